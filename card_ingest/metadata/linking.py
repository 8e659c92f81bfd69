import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from ..models import FileGroup, FileRole


def classify_extension(filename, primary_exts: Set[str], companion_exts: Set[str]) -> FileRole:
    """Primary is checked first; extension case is ignored."""
    ext = Path(filename).suffix.lower()
    if ext in primary_exts:
        return FileRole.PRIMARY
    if ext in companion_exts:
        return FileRole.COMPANION
    return FileRole.NEITHER


def singleton_groups(files: Iterable[Path]) -> List[FileGroup]:
    """Used when relationships are not maintained: every file stands alone."""
    return [FileGroup.single(Path(f)) for f in files]


class FileLinker:
    """
    Groups files that belong to the same capture (video + subtitle track,
    RAW + sidecar) by directory and stem, so they end up under one name.
    """

    def __init__(self, primary_exts: Iterable[str], companion_exts: Iterable[str]):
        self.primary_exts = {e.lower() for e in primary_exts}
        self.companion_exts = {e.lower() for e in companion_exts}

    def group_files(self, files: Iterable[Path]) -> List[FileGroup]:
        # Index by (parent, stem); dict keeps first-seen order
        by_key: Dict[Tuple[Path, str], Dict[str, List[Path]]] = defaultdict(
            lambda: {'primary': [], 'companion': []}
        )
        for f in files:
            p = Path(f)
            role = classify_extension(p.name, self.primary_exts, self.companion_exts)
            if role is FileRole.NEITHER:
                logging.warning(f"Not a primary or companion type, skipped: {p}")
                continue
            by_key[(p.parent, p.stem)][role.value].append(p)

        groups: List[FileGroup] = []
        links_made = 0
        for members in by_key.values():
            primaries = members['primary']
            companions = members['companion']

            if not primaries:
                # Partner missing: companions are imported on their own
                groups.extend(FileGroup.single(c) for c in companions)
                continue

            # Every primary sharing the stem gets all companions
            for primary in primaries:
                groups.append(FileGroup.of(primary, companions))
                links_made += len(companions)

        logging.info(f"Built {len(groups)} file groups ({links_made} companion links).")
        return groups
