import csv
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .models import TransferResult


@dataclass(frozen=True)
class TransferRecord:
    result: TransferResult
    size_bytes: int
    duration_sec: float

    def speed(self) -> str:
        if self.duration_sec <= 0:
            return "N/A"
        return f"{format_bytes(self.size_bytes / self.duration_sec)}/s"


@dataclass(frozen=True)
class ErrorRecord:
    path: Path
    message: str
    files_affected: int = 1


def format_bytes(num: float) -> str:
    if num <= 0:
        return "0 B"
    for unit in ("B", "KB", "MB", "GB"):
        if num < 1024 or unit == "GB":
            break
        num /= 1024
    return f"{num:.2f}".rstrip("0").rstrip(".") + f" {unit}"


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{seconds / 60:.1f}m"


class ImportReport:
    """
    Collects per-file outcomes of one import session and renders them as a
    text summary or a CSV listing. Safe to record into from worker threads.
    """

    def __init__(self, profile=None):
        self.profile = profile
        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None
        self.total_files = 0
        self.total_size = 0
        self.transfers: List[TransferRecord] = []
        self.errors: List[ErrorRecord] = []
        self._lock = threading.Lock()

    # --- Recording ---

    def record_transfer(self, result: TransferResult, size_bytes: int, duration_sec: float):
        with self._lock:
            self.transfers.append(TransferRecord(result, size_bytes, duration_sec))

    def record_error(self, path: Path, message: str, files_affected: int = 1):
        with self._lock:
            self.errors.append(ErrorRecord(Path(path), message, files_affected))

    def finish(self):
        self.finished_at = datetime.now()

    # --- Counts ---

    @property
    def processed_files(self) -> int:
        return len(self.transfers)

    @property
    def failed_files(self) -> int:
        return sum(e.files_affected for e in self.errors)

    @property
    def failed_groups(self) -> int:
        return len(self.errors)

    @property
    def companion_files(self) -> int:
        return sum(1 for t in self.transfers if t.result.is_companion)

    @property
    def transferred_size(self) -> int:
        return sum(t.size_bytes for t in self.transfers)

    @property
    def transfer_time(self) -> float:
        return sum(t.duration_sec for t in self.transfers)

    def summary(self) -> Dict[str, int]:
        return {
            'total_files': self.total_files,
            'processed_files': self.processed_files,
            'failed_files': self.failed_files,
            'failed_groups': self.failed_groups,
            'companion_files': self.companion_files,
            'total_size': self.total_size,
            'transferred_size': self.transferred_size,
        }

    # --- Rendering ---

    def average_speed(self) -> str:
        if self.transfer_time <= 0:
            return "N/A"
        return f"{format_bytes(self.transferred_size / self.transfer_time)}/s"

    def render_text(self, detailed: bool = False) -> str:
        end = self.finished_at or datetime.now()
        rule = "=" * 80
        sub = "-" * 40
        lines = [rule, "CARD INGEST IMPORT REPORT", rule, ""]

        lines += [
            "SESSION INFORMATION", sub,
            f"Start Time: {self.started_at.isoformat(timespec='seconds')}",
            f"End Time: {end.isoformat(timespec='seconds')}",
            f"Duration: {format_duration((end - self.started_at).total_seconds())}",
            "",
        ]

        if self.profile is not None:
            p = self.profile
            lines += [
                "PROFILE CONFIGURATION", sub,
                f"Name: {p.name or 'Custom'}",
                f"Source: {p.source_path}",
                f"Destination: {p.destination_root}",
                f"Camera Label: {p.camera_label}",
                f"Transfer Mode: {p.transfer_mode.value}",
                f"Collision Handling: {p.on_collision.value}",
                "",
            ]

        lines += [
            "TRANSFER SUMMARY", sub,
            f"Total Files Found: {self.total_files}",
            f"Successfully Processed: {self.processed_files}",
            f"Companion Files: {self.companion_files}",
            f"Failed: {self.failed_files}",
            f"Total Size: {format_bytes(self.total_size)}",
            f"Transferred Size: {format_bytes(self.transferred_size)}",
            f"Average Transfer Speed: {self.average_speed()}",
            f"Total Transfer Time: {format_duration(self.transfer_time)}",
            "",
        ]

        if detailed and self.transfers:
            lines += ["FILE TRANSFER DETAILS", sub]
            for idx, t in enumerate(self.transfers, 1):
                tag = " (companion)" if t.result.is_companion else ""
                lines += [
                    f"{idx}. {t.result.source_path}{tag}",
                    f"   Target: {t.result.target_path}",
                    f"   Size: {format_bytes(t.size_bytes)}, Duration: {format_duration(t.duration_sec)}, "
                    f"Speed: {t.speed()}",
                    "",
                ]

        if self.errors:
            lines += ["ERRORS", sub]
            for idx, e in enumerate(self.errors, 1):
                lines += [f"{idx}. {e.path}", f"   {e.message}", ""]

        lines += [rule, f"Report generated at: {datetime.now().isoformat(timespec='seconds')}", rule]
        return "\n".join(lines)

    def write_text(self, path: Path, detailed: bool = False) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_text(detailed=detailed), encoding="utf-8")
        logging.info(f"Report saved to: {path}")
        return path

    def write_csv(self, path: Path) -> Path:
        """One row per transferred or failed file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        headers = ["Source Path", "Target Path", "Status", "Companion", "Size Bytes", "Duration Sec", "Notes"]
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for t in self.transfers:
                writer.writerow([
                    str(t.result.source_path),
                    str(t.result.target_path),
                    "TRANSFERRED",
                    "yes" if t.result.is_companion else "no",
                    t.size_bytes,
                    f"{t.duration_sec:.3f}",
                    "",
                ])
            for e in self.errors:
                writer.writerow([str(e.path), "", "FAILED", "", "", "", e.message])

        logging.info(f"CSV report written to {path} ({len(self.transfers)} transfers, {len(self.errors)} errors)")
        return path
