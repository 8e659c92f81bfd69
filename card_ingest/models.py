from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple


class TransferMode(str, Enum):
    COPY = "copy"
    MOVE = "move"


class CollisionPolicy(str, Enum):
    RENAME = "rename"
    REPLACE = "replace"


class FileRole(str, Enum):
    PRIMARY = "primary"
    COMPANION = "companion"
    NEITHER = "neither"


class DateSource(str, Enum):
    """Where a capture timestamp came from, in fallback order."""
    EXIF_ORIGINAL = "exif-original"
    EXIF_DATETIME = "exif-datetime"
    EXIFTOOL = "exiftool"
    FILE_MTIME = "file-mtime"


@dataclass(frozen=True)
class FileGroup:
    """
    One capture moment: a primary file plus the companions that share its
    directory and stem. Companions get their name from the primary.
    """
    files: Tuple[Path, ...]
    primary_file: Path
    companion_files: Tuple[Path, ...] = ()

    @classmethod
    def single(cls, path: Path) -> "FileGroup":
        return cls(files=(path,), primary_file=path)

    @classmethod
    def of(cls, primary: Path, companions: Iterable[Path] = ()) -> "FileGroup":
        companions = tuple(companions)
        return cls(files=(primary,) + companions, primary_file=primary, companion_files=companions)

    def is_companion(self, path: Path) -> bool:
        return path in self.companion_files


@dataclass(frozen=True)
class MetadataFields:
    """Raw date strings as reported by a metadata reader."""
    original_capture: Optional[str] = None
    generic_datetime: Optional[str] = None


@dataclass(frozen=True)
class ResolvedDate:
    value: datetime
    source: DateSource


@dataclass(frozen=True)
class TargetPlan:
    target_directory: Path
    base_name: str          # template-expanded, no extension
    filename: str           # base_name + extension of the planned file

    def filename_for(self, path: Path) -> str:
        """Shared base name with `path`'s own extension (case preserved)."""
        return f"{self.base_name}{Path(path).suffix}"


@dataclass(frozen=True)
class TransferResult:
    source_path: Path
    target_path: Path
    is_companion: bool = False

