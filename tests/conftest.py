import os
import pytest
from datetime import datetime, timezone
from card_ingest.profiles import validate_profile


@pytest.fixture
def make_file(tmp_path):
    """Creates a file under tmp_path with optional content and mtime."""
    def _make(rel, content=b"data", mtime=None):
        p = tmp_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
        if mtime is not None:
            ts = mtime.timestamp()
            os.utime(p, (ts, ts))
        return p
    return _make


@pytest.fixture
def dji_time():
    return datetime(2025, 7, 6, 14, 12, 54, tzinfo=timezone.utc)


@pytest.fixture
def profile_data(tmp_path):
    return {
        'name': 'dji-drone',
        'sourcePath': str(tmp_path / "card"),
        'destinationRoot': str(tmp_path / "library"),
        'cameraLabel': 'DJI',
        'includeExtensions': ['.mp4', '.srt', '.jpg', '.dng'],
        'primaryExtensions': ['.mp4', '.jpg', '.dng'],
        'companionExtensions': ['.srt'],
        'useExifDate': False,
    }


@pytest.fixture
def profile(profile_data):
    return validate_profile(profile_data)
