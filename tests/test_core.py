import errno
import pytest
from pathlib import Path
from datetime import datetime, timezone
from card_ingest.core import CardIngestApp, DirectoryLocks, process_group
from card_ingest.exceptions import GroupTransferError
from card_ingest.metadata.dates import DateResolver
from card_ingest.models import CollisionPolicy, FileGroup, MetadataFields, TransferMode
from card_ingest.organization.mover import FileMover
from card_ingest.profiles import validate_profile

TEMPLATE = "{date}_{time}_{camera}"


class StubExtractor:
    """Reports a fixed capture date for MP4 files only."""

    def __init__(self, value):
        self.value = value

    def read(self, path):
        if path.suffix.lower() == ".mp4":
            return MetadataFields(original_capture=self.value)
        return MetadataFields()


class NoExifTool:
    def read(self, path):
        return MetadataFields()


class FailingMover(FileMover):
    """Fails for one source filename, behaves normally otherwise."""

    def __init__(self, fail_name):
        self.fail_name = fail_name

    def transfer(self, src, target_dir, filename, mode):
        if Path(src).name == self.fail_name:
            raise OSError(errno.EIO, "Input/output error", str(src))
        return super().transfer(src, target_dir, filename, mode)


@pytest.fixture
def dji_pair(make_file, dji_time):
    mp4 = make_file("card/DJI_20250706141254_0019.MP4", b"video content", mtime=dji_time)
    srt = make_file("card/DJI_20250706141254_0019.SRT", b"subtitle content", mtime=dji_time)
    return mp4, srt


# --- process_group ---

def test_group_files_share_base_name(tmp_path, dji_pair, dji_time):
    mp4, srt = dji_pair
    group = FileGroup.of(mp4, [srt])
    dest = tmp_path / "library"

    results = process_group(group, dji_time, "DJI_Mini4Pro", dest,
                            CollisionPolicy.RENAME, TransferMode.COPY, TEMPLATE)

    assert [r.source_path for r in results] == [mp4, srt]
    assert results[0].target_path == dest / "2025-07-06" / "2025-07-06_14-12-54_DJI_Mini4Pro.MP4"
    assert results[1].target_path == dest / "2025-07-06" / "2025-07-06_14-12-54_DJI_Mini4Pro.SRT"
    assert [r.is_companion for r in results] == [False, True]
    assert results[0].target_path.read_bytes() == b"video content"
    assert results[1].target_path.read_bytes() == b"subtitle content"
    assert mp4.exists() and srt.exists()


def test_repeated_import_renames_each_extension_independently(tmp_path, dji_pair, dji_time):
    mp4, srt = dji_pair
    group = FileGroup.of(mp4, [srt])
    dest = tmp_path / "library"

    process_group(group, dji_time, "DJI", dest, "rename", "copy", TEMPLATE)
    second = process_group(group, dji_time, "DJI", dest, "rename", "copy", TEMPLATE)

    assert [r.target_path.name for r in second] == [
        "2025-07-06_14-12-54_DJI_1.MP4",
        "2025-07-06_14-12-54_DJI_1.SRT",
    ]


def test_replace_policy_overwrites(tmp_path, make_file, dji_time):
    first = make_file("card1/A.MP4", b"first")
    second = make_file("card2/A.MP4", b"second")
    dest = tmp_path / "library"

    process_group(FileGroup.single(first), dji_time, "DJI", dest, "replace", "copy", TEMPLATE)
    results = process_group(FileGroup.single(second), dji_time, "DJI", dest, "replace", "copy", TEMPLATE)

    target = dest / "2025-07-06" / "2025-07-06_14-12-54_DJI.MP4"
    assert results[0].target_path == target
    assert target.read_bytes() == b"second"
    assert len(list((dest / "2025-07-06").iterdir())) == 1


def test_move_mode_removes_sources(tmp_path, dji_pair, dji_time):
    mp4, srt = dji_pair

    results = process_group(FileGroup.of(mp4, [srt]), dji_time, "DJI", tmp_path / "lib",
                            CollisionPolicy.RENAME, TransferMode.MOVE, TEMPLATE)

    assert not mp4.exists() and not srt.exists()
    assert all(r.target_path.exists() for r in results)


def test_failure_keeps_already_transferred_files(tmp_path, dji_pair, dji_time):
    mp4, srt = dji_pair
    dest = tmp_path / "lib"

    with pytest.raises(GroupTransferError) as exc_info:
        process_group(FileGroup.of(mp4, [srt]), dji_time, "DJI", dest,
                      CollisionPolicy.RENAME, TransferMode.COPY, TEMPLATE,
                      mover=FailingMover(srt.name))

    err = exc_info.value
    assert err.source_path == srt
    assert isinstance(err.cause, OSError)
    assert len(err.completed) == 1
    assert err.completed[0].target_path.exists()


def test_directory_locks_are_shared_per_directory(tmp_path):
    locks = DirectoryLocks()

    assert locks.for_dir(tmp_path / "a") is locks.for_dir(tmp_path / "a")
    assert locks.for_dir(tmp_path / "a") is not locks.for_dir(tmp_path / "b")


# --- CardIngestApp ---

def test_end_to_end_import_with_embedded_date(tmp_path, profile_data, dji_pair):
    profile = validate_profile({**profile_data, 'useExifDate': True})
    resolver = DateResolver(StubExtractor("2025:07:06 14:12:54"), NoExifTool())

    report = CardIngestApp(date_resolver=resolver).run_import(profile, progress=False)

    day = profile.destination_root / "2025-07-06"
    assert (day / "2025-07-06_14-12-54_DJI.MP4").read_bytes() == b"video content"
    assert (day / "2025-07-06_14-12-54_DJI.SRT").read_bytes() == b"subtitle content"

    by_name = {t.result.target_path.name: t.result for t in report.transfers}
    assert by_name["2025-07-06_14-12-54_DJI.SRT"].is_companion
    assert not by_name["2025-07-06_14-12-54_DJI.MP4"].is_companion
    assert report.processed_files == 2
    assert report.failed_files == 0


def test_companion_uses_primary_date_not_its_own(tmp_path, profile_data, make_file, dji_time):
    make_file("card/A.MP4", b"v", mtime=dji_time)
    make_file("card/A.SRT", b"s", mtime=datetime(2020, 1, 1, tzinfo=timezone.utc))

    profile = validate_profile(profile_data)

    report = CardIngestApp().run_import(profile, progress=False)

    names = sorted(t.result.target_path.relative_to(profile.destination_root).as_posix()
                   for t in report.transfers)
    assert names == ["2025-07-06/2025-07-06_14-12-54_DJI.MP4", "2025-07-06/2025-07-06_14-12-54_DJI.SRT"]


def test_relationships_disabled_uses_each_files_own_date(profile_data, make_file, dji_time):
    make_file("card/A.MP4", b"v", mtime=dji_time)
    make_file("card/A.SRT", b"s", mtime=datetime(2020, 1, 1, tzinfo=timezone.utc))
    profile = validate_profile({**profile_data, 'maintainFileRelationships': False})

    report = CardIngestApp().run_import(profile, progress=False)

    dirs = sorted(t.result.target_path.parent.name for t in report.transfers)
    assert dirs == ["2020-01-01", "2025-07-06"]
    assert report.companion_files == 0


def test_fan_out_copies_companion_for_each_primary(profile_data, make_file, dji_time):
    make_file("card/C.MP4", b"mp4", mtime=dji_time)
    make_file("card/C.MOV", b"mov", mtime=dji_time)
    make_file("card/C.SRT", b"srt", mtime=dji_time)
    profile = validate_profile({
        **profile_data,
        'includeExtensions': ['.mp4', '.mov', '.srt'],
        'primaryExtensions': ['.mp4', '.mov'],
    })

    report = CardIngestApp().run_import(profile, progress=False)

    day = profile.destination_root / "2025-07-06"
    assert sorted(p.name for p in day.iterdir()) == [
        "2025-07-06_14-12-54_DJI.MOV",
        "2025-07-06_14-12-54_DJI.MP4",
        "2025-07-06_14-12-54_DJI.SRT",
        "2025-07-06_14-12-54_DJI_1.SRT",
    ]
    assert report.companion_files == 2


def test_failed_group_does_not_abort_import(profile_data, make_file, dji_time):
    make_file("card/A.MP4", b"a", mtime=dji_time)
    make_file("card/B.MP4", b"b", mtime=dji_time)
    make_file("card/C.MP4", b"c", mtime=dji_time)
    profile = validate_profile(profile_data)

    report = CardIngestApp(mover=FailingMover("B.MP4")).run_import(profile, progress=False)

    assert report.processed_files == 2
    assert report.failed_files == 1
    assert report.failed_groups == 1
    assert report.errors[0].path.name == "B.MP4"


class DatePerFileExtractor:
    def __init__(self, values):
        self.values = values

    def read(self, path):
        return MetadataFields(original_capture=self.values.get(path.name))


@pytest.mark.parametrize("workers", [1, 2])
def test_unexpected_group_error_does_not_abort_import(profile_data, make_file, dji_time, workers):
    make_file("card/A.MP4", b"a", mtime=dji_time)
    make_file("card/B.MP4", b"b", mtime=dji_time)
    profile = validate_profile({**profile_data, 'useExifDate': True})
    # Converting this one to UTC runs past datetime.max
    extractor = DatePerFileExtractor({
        "A.MP4": "9999:12:31 23:30:00-01:00",
        "B.MP4": "2025:07:06 14:12:54",
    })

    app = CardIngestApp(date_resolver=DateResolver(extractor, NoExifTool()))
    report = app.run_import(profile, max_workers=workers, progress=False)

    assert report.processed_files == 1
    assert report.failed_groups == 1
    assert report.errors[0].path.name == "A.MP4"
    assert (profile.destination_root / "2025-07-06" / "2025-07-06_14-12-54_DJI.MP4").exists()


def test_parallel_import_produces_unique_names(profile_data, make_file, dji_time):
    for i in range(12):
        make_file(f"card/{i:03d}/clip.MP4", f"clip {i}".encode(), mtime=dji_time)
    profile = validate_profile(profile_data)

    report = CardIngestApp().run_import(profile, max_workers=4, progress=False)

    targets = [t.result.target_path for t in report.transfers]
    assert len(targets) == 12
    assert len(set(targets)) == 12
    assert len(list((profile.destination_root / "2025-07-06").iterdir())) == 12


def test_empty_source_returns_empty_report(profile_data, tmp_path):
    (tmp_path / "card").mkdir()

    report = CardIngestApp().run_import(validate_profile(profile_data), progress=False)

    assert report.total_files == 0
    assert report.processed_files == 0
    assert report.finished_at is not None


def test_report_accounts_total_size_before_transfer(profile_data, dji_pair):
    report = CardIngestApp().run_import(validate_profile(profile_data), progress=False)

    assert report.total_files == 2
    assert report.total_size == len(b"video content") + len(b"subtitle content")
    assert report.transferred_size == report.total_size
