import os
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Set

from .. import config


def _normalize_exts(exts: Iterable[str]) -> Set[str]:
    return {e.lower() if e.startswith('.') else f".{e.lower()}" for e in exts}


class DirectoryScanner:
    """
    Walks a card's file tree and returns the media files worth importing.

    Unreadable directories are skipped (and remembered in `unreadable_dirs`)
    so one bad folder on a card never aborts the scan.
    """

    def __init__(self):
        self.unreadable_dirs: List[Path] = []

    def scan(self,
             root: Path,
             include_exts: Iterable[str],
             exclude_exts: Iterable[str] = (),
             exclude_folders: Iterable[str] = ()) -> List[Path]:
        """
        Returns every qualifying file below root, in traversal order.

        Args:
            include_exts: Extensions to import (case-insensitive).
            exclude_exts: Extensions to drop even if included.
            exclude_folders: Directory names pruned wherever they appear.
        """
        include = _normalize_exts(include_exts)
        exclude = _normalize_exts(exclude_exts)
        skip_names = set(exclude_folders)
        self.unreadable_dirs = []

        files = []
        for path in self._iter_files(Path(root), skip_names):
            if path.name.startswith(config.SIDECAR_PREFIX):
                logging.debug(f"Skipping sidecar artifact {path}")
                continue
            ext = path.suffix.lower()
            if ext in include and ext not in exclude:
                files.append(path)

        logging.info(f"Scan of {root} found {len(files)} files")
        return files

    def _iter_files(self, root: Path, skip_names: Set[str]) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Could not scan directory {current}: {e}")
                self.unreadable_dirs.append(current)
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                try:
                    if e.is_dir(follow_symlinks=False):
                        if e.name not in skip_names:
                            dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        yield Path(e.path)
                except OSError as err:
                    logging.debug(f"Cannot access entry {e.path}: {err}")

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)


def total_size(paths: Iterable[Path]) -> int:
    """Sums file sizes once, before processing starts."""
    total = 0
    for p in paths:
        try:
            total += p.stat().st_size
        except OSError as e:
            logging.warning(f"Could not get file size for {p}: {e}")
    return total
