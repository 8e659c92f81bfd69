"""
Capture date resolution.

A file's date comes from the first source in this list that produces one:

    1. EXIF DateTimeOriginal (in-process reader)
    2. EXIF DateTime (same read)
    3. exiftool -DateTimeOriginal (subprocess, catches RAW files exifread
       cannot parse)
    4. filesystem modification time

Stages 1-3 never raise to the caller; a failure just moves on to the next
stage. Dates are never merged across sources.
"""
import logging
from datetime import datetime, timezone
from functools import cached_property
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..models import DateSource, MetadataFields, ResolvedDate
from .extract import ExifToolReader, MetadataExtractor, parse_exif_datetime


class _Probe:
    """Per-call state so the in-process reader runs at most once."""

    def __init__(self, path: Path, extractor: MetadataExtractor):
        self.path = path
        self._extractor = extractor

    @cached_property
    def fields(self) -> MetadataFields:
        try:
            return self._extractor.read(self.path)
        except Exception as e:
            logging.debug(f"Metadata read failed for {self.path}: {e}")
            return MetadataFields()


Stage = Callable[[_Probe], Optional[datetime]]


class DateResolver:
    def __init__(self,
                 extractor: Optional[MetadataExtractor] = None,
                 exiftool: Optional[ExifToolReader] = None):
        self.extractor = extractor or MetadataExtractor()
        self.exiftool = exiftool or ExifToolReader()

    @property
    def stages(self) -> List[Tuple[DateSource, Stage]]:
        """Metadata stages in the order they are tried."""
        return [
            (DateSource.EXIF_ORIGINAL, self._from_original_capture),
            (DateSource.EXIF_DATETIME, self._from_generic_datetime),
            (DateSource.EXIFTOOL, self._from_exiftool),
        ]

    def resolve(self, path: Path, use_exif_date: bool = True) -> ResolvedDate:
        path = Path(path)
        if use_exif_date:
            probe = _Probe(path, self.extractor)
            for source, stage in self.stages:
                try:
                    dt = stage(probe)
                except Exception as e:
                    logging.debug(f"Date stage {source.value} failed for {path}: {e}")
                    continue
                if dt is not None:
                    logging.debug(f"Date for {path.name} from {source.value}: {dt}")
                    return ResolvedDate(dt, source)
            logging.debug(f"No embedded date for {path.name}, using modification time")

        return ResolvedDate(self._file_mtime(path), DateSource.FILE_MTIME)

    def resolve_date(self, path: Path, use_exif_date: bool = True) -> datetime:
        return self.resolve(path, use_exif_date).value

    # --- Stages ---

    def _from_original_capture(self, probe: _Probe) -> Optional[datetime]:
        return parse_exif_datetime(probe.fields.original_capture)

    def _from_generic_datetime(self, probe: _Probe) -> Optional[datetime]:
        return parse_exif_datetime(probe.fields.generic_datetime)

    def _from_exiftool(self, probe: _Probe) -> Optional[datetime]:
        return parse_exif_datetime(self.exiftool.read(probe.path).original_capture)

    def _file_mtime(self, path: Path) -> datetime:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
