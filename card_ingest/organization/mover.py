import errno
import os
import shutil
import logging
from pathlib import Path

from ..models import TransferMode


class FileMover:
    def transfer(self, src: Path, target_dir: Path, filename: str, mode: TransferMode) -> Path:
        """
        Copies or moves one file to target_dir/filename and returns the new path.

        Moves try an atomic rename first. Only a cross-device error falls back
        to copy-then-delete (not atomic: a crash in between leaves both copies).
        Any other error propagates unchanged.
        """
        src = Path(src)
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        dest = target_dir / filename

        if TransferMode(mode) is TransferMode.COPY:
            shutil.copy2(src, dest)
            return dest

        try:
            os.replace(src, dest)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            logging.debug(f"Cross-device move for {src}, copying then deleting source")
            shutil.copy2(src, dest)
            os.unlink(src)
        return dest
