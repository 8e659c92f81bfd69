"""
Configuration constants for card ingest.
"""
from pathlib import Path

# --- File Type Definitions ---
RAW_EXTS = {'.raw', '.cr2', '.cr3', '.nef', '.arw', '.orf', '.rw2', '.dng'}
JPEG_EXTS = {'.jpg', '.jpeg'}
VIDEO_EXTS = {'.mp4', '.mov', '.avi', '.mts', '.m4v'}
COMPANION_EXTS = {'.srt', '.lrf', '.xmp', '.thm'}

# Defaults used when a profile does not list its own sets
DEFAULT_INCLUDE_EXTS = RAW_EXTS | JPEG_EXTS | VIDEO_EXTS | COMPANION_EXTS
DEFAULT_PRIMARY_EXTS = RAW_EXTS | JPEG_EXTS | VIDEO_EXTS
DEFAULT_COMPANION_EXTS = set(COMPANION_EXTS)

# macOS writes "._name" AppleDouble files next to real media on FAT cards
SIDECAR_PREFIX = "._"

# --- Metadata Parsing ---
# exifread tag names, tried in this order
ORIGINAL_CAPTURE_TAG = 'EXIF DateTimeOriginal'
GENERIC_DATETIME_TAG = 'Image DateTime'

# MediaInfo "General" track attributes for video containers
VIDEO_ORIGINAL_FIELDS = ["recorded_date"]
VIDEO_GENERIC_FIELDS = ["encoded_date", "tagged_date"]

EXIFTOOL_CMD = "exiftool"
EXIFTOOL_TIMEOUT_SEC = 30

# --- Organization ---
DEFAULT_FILENAME_FORMAT = "{date}_{time}_{camera}"
TEMPLATE_PLACEHOLDERS = ("date", "time", "camera")
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H-%M-%S"

# --- Profiles & Reports ---
APP_DIR = Path.home() / ".cardingest"
PROFILE_DIR = APP_DIR / "profiles"
REPORT_DIR = APP_DIR / "reports"

LOG_LEVELS = ("debug", "info", "warn", "error")
