import logging
import re
import subprocess
from pathlib import Path
from datetime import datetime
from typing import Optional

import exifread
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataExtractionError
from ..models import MetadataFields

_EXIF_DATE = re.compile(r"^(\d{4}):(\d{2}):(\d{2})")


class MetadataExtractor:
    """
    In-process metadata reader.

    Strategies:
      - Images: Uses 'exifread' (fast, Python-native).
      - Video: Uses 'pymediainfo' when exifread finds no date tags.

    Best effort: any failure yields empty fields instead of an exception.
    """

    def read(self, path: Path) -> MetadataFields:
        fields = self._read_exif(path)
        if fields.original_capture or fields.generic_datetime:
            return fields

        if path.suffix.lower() in config.VIDEO_EXTS:
            return self._read_mediainfo(path)
        return fields

    def _read_exif(self, path: Path) -> MetadataFields:
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.debug(f"ExifRead failed for {path}: {e}")
            return MetadataFields()

        return MetadataFields(
            original_capture=self._tag_text(tags, config.ORIGINAL_CAPTURE_TAG),
            generic_datetime=self._tag_text(tags, config.GENERIC_DATETIME_TAG),
        )

    def _read_mediainfo(self, path: Path) -> MetadataFields:
        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")
            return MetadataFields()

        for track in mi.tracks:
            if track.track_type != "General":
                continue
            return MetadataFields(
                original_capture=self._first_attr(track, config.VIDEO_ORIGINAL_FIELDS),
                generic_datetime=self._first_attr(track, config.VIDEO_GENERIC_FIELDS),
            )
        return MetadataFields()

    def _tag_text(self, tags, name: str) -> Optional[str]:
        if name in tags:
            value = str(tags[name]).strip()
            return value or None
        return None

    def _first_attr(self, track, names) -> Optional[str]:
        for name in names:
            val = getattr(track, name, None)
            if val:
                return str(val)
        return None


class ExifToolReader:
    """
    Wraps the 'exiftool' command line utility.
    Must be installed and on the system PATH; when it is not, reads come back empty.

    Exists because exifread cannot parse some RAW containers (DJI DNGs among them).
    """

    def __init__(self, command: str = config.EXIFTOOL_CMD, timeout: Optional[float] = config.EXIFTOOL_TIMEOUT_SEC):
        self.command = command
        self.timeout = timeout

    def read(self, path: Path) -> MetadataFields:
        try:
            return MetadataFields(original_capture=self.query(path, "DateTimeOriginal"))
        except MetadataExtractionError as e:
            logging.debug(f"ExifTool failed for {path}: {e}")
            return MetadataFields()

    def query(self, path: Path, tag: str) -> str:
        """
        Returns the bare value of one tag.

        Raises:
            MetadataExtractionError: tool missing, timed out, exited non-zero
                or printed nothing.
        """
        # -s3 = print the value only, no tag name
        cmd = [self.command, f"-{tag}", "-s3", str(path)]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise MetadataExtractionError(f"{self.command} not found") from e
        except subprocess.TimeoutExpired as e:
            raise MetadataExtractionError(f"{self.command} timed out after {self.timeout}s") from e

        out = proc.stdout.strip()
        if proc.returncode != 0 or not out:
            raise MetadataExtractionError(proc.stderr.strip() or f"{self.command} failed")
        return out


def parse_exif_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """
    Parses "YYYY:MM:DD HH:MM:SS" (the EXIF / exiftool form).

    Sub-seconds are dropped; a trailing UTC offset is kept. ISO strings and
    MediaInfo's "UTC" prefix/suffix are accepted too. Returns None when the
    text is not a date.
    """
    if not dt_str:
        return None

    clean = dt_str.replace("UTC", "").strip()
    if not clean:
        return None

    # Rewrite the date part only: "2025:07:06" -> "2025-07-06"
    clean = _EXIF_DATE.sub(r"\1-\2-\3", clean, count=1)

    offset = ""
    date_part, _, time_part = clean.partition(" ")
    if not time_part and "T" in clean:
        date_part, _, time_part = clean.partition("T")
    for sign in ("+", "-"):
        if sign in time_part:
            time_part, _, rest = time_part.partition(sign)
            offset = sign + rest
            break
    if time_part.endswith("Z"):
        time_part, offset = time_part[:-1], "+00:00"
    if "." in time_part:
        time_part = time_part.split(".")[0]

    try:
        if not time_part:
            return datetime.strptime(date_part, "%Y-%m-%d")
        return datetime.fromisoformat(f"{date_part} {time_part}{offset}")
    except ValueError:
        return None
