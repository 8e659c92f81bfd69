import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .exceptions import GroupTransferError
from .metadata.dates import DateResolver
from .metadata.linking import FileLinker, singleton_groups
from .models import CollisionPolicy, FileGroup, TransferMode, TransferResult
from .organization.mover import FileMover
from .organization.rules import DestinationPlanner, resolve_collision
from .profiles import ImportProfile
from .reporting import ImportReport
from .scanning.filesystem import DirectoryScanner, total_size


class DirectoryLocks:
    """
    One lock per target directory, so probe-then-write for a name is never
    interleaved with another worker writing into the same folder.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)

    def for_dir(self, directory: Path) -> threading.Lock:
        with self._guard:
            return self._locks[Path(directory)]


def process_group(group: FileGroup,
                  timestamp: datetime,
                  camera_label: str,
                  destination_root: Path,
                  collision_policy: CollisionPolicy,
                  transfer_mode: TransferMode,
                  template: str,
                  mover: Optional[FileMover] = None,
                  locks: Optional[DirectoryLocks] = None) -> List[TransferResult]:
    """
    Transfers every file of a group under one shared base name.

    The plan comes from the primary file; companions reuse its base name with
    their own extension. Collisions are resolved per file. If a file fails,
    files already transferred stay in place and GroupTransferError carries
    their results.
    """
    mover = mover or FileMover()
    locks = locks or DirectoryLocks()

    plan = DestinationPlanner(template).plan(
        timestamp, camera_label, group.primary_file, destination_root
    )

    results: List[TransferResult] = []
    for path in group.files:
        desired = plan.filename_for(path)
        try:
            with locks.for_dir(plan.target_directory):
                final_name = resolve_collision(plan.target_directory, desired, collision_policy)
                target = mover.transfer(path, plan.target_directory, final_name, transfer_mode)
        except OSError as e:
            raise GroupTransferError(path, e, completed=results) from e

        results.append(TransferResult(path, target, group.is_companion(path)))

    return results


class CardIngestApp:
    def __init__(self,
                 scanner: Optional[DirectoryScanner] = None,
                 date_resolver: Optional[DateResolver] = None,
                 mover: Optional[FileMover] = None):
        self.scanner = scanner or DirectoryScanner()
        self.date_resolver = date_resolver or DateResolver()
        self.mover = mover or FileMover()

    def run_import(self, profile: ImportProfile, max_workers: int = 1, progress: bool = True) -> ImportReport:
        """
        Executes one import:
        1. Scan the source
        2. Group related files
        3. Resolve each group's date and transfer it

        A failing group is logged and counted; the run continues.
        """
        report = ImportReport(profile)

        logging.info(
            f"Starting import '{profile.name or 'Custom'}': {profile.source_path} -> "
            f"{profile.destination_root} (camera={profile.camera_label}, mode={profile.transfer_mode.value}, "
            f"collision={profile.on_collision.value})"
        )

        # --- Step 1: Scanning ---
        files = self.scanner.scan(
            profile.source_path,
            profile.include_extensions,
            profile.exclude_extensions,
            profile.exclude_folders,
        )
        if not files:
            logging.info("No files found to import")
            report.finish()
            return report

        # --- Step 2: Grouping ---
        if profile.maintain_file_relationships:
            groups = FileLinker(profile.primary_extensions, profile.companion_extensions).group_files(files)
        else:
            groups = singleton_groups(files)

        report.total_files = sum(len(g.files) for g in groups)
        report.total_size = total_size(f for g in groups for f in g.files)
        logging.info(f"Found {len(files)} files in {len(groups)} groups ({report.total_size} bytes)")

        # --- Step 3: Transfer ---
        locks = DirectoryLocks()
        bar = tqdm(total=len(groups), desc="Importing", unit="group", disable=not progress)
        try:
            if max_workers <= 1:
                for group in groups:
                    self._import_group(group, profile, report, locks)
                    bar.update(1)
            else:
                with ThreadPoolExecutor(max_workers=max_workers) as executor:
                    futures = [
                        executor.submit(self._import_group, group, profile, report, locks)
                        for group in groups
                    ]
                    for future in as_completed(futures):
                        future.result()
                        bar.update(1)
        finally:
            bar.close()

        report.finish()
        logging.info(
            f"Import completed: {report.processed_files} processed, {report.failed_files} failed "
            f"({report.failed_groups} groups)"
        )
        return report

    def _import_group(self, group: FileGroup, profile: ImportProfile, report: ImportReport, locks: DirectoryLocks):
        start = time.monotonic()
        try:
            timestamp = self.date_resolver.resolve_date(group.primary_file, profile.use_exif_date)
            results = process_group(
                group,
                timestamp,
                profile.camera_label,
                profile.destination_root,
                profile.on_collision,
                profile.transfer_mode,
                profile.filename_format,
                mover=self.mover,
                locks=locks,
            )
        except GroupTransferError as e:
            self._record_results(e.completed, report, start)
            remaining = len(group.files) - len(e.completed)
            logging.error(f"Error processing {e.source_path}: {e.cause}")
            report.record_error(e.source_path, str(e.cause), files_affected=remaining)
            return
        except Exception as e:
            logging.error(f"Error processing {group.primary_file}: {e}")
            report.record_error(group.primary_file, str(e), files_affected=len(group.files))
            return

        self._record_results(results, report, start)

    def _record_results(self, results: List[TransferResult], report: ImportReport, start: float):
        duration = time.monotonic() - start
        share = duration / len(results) if results else 0.0
        for r in results:
            try:
                size = r.target_path.stat().st_size
            except OSError:
                size = 0
            kind = " (companion)" if r.is_companion else ""
            logging.info(f"{r.source_path} -> {r.target_path}{kind}")
            report.record_transfer(r, size, share)
