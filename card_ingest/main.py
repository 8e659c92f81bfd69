import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import config
from .core import CardIngestApp
from .exceptions import ConfigurationError
from .profiles import ProfileStore, validate_profile

_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}


def setup_logging(level: str = "info", log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=_LEVELS.get(level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="card-ingest",
        description="Import media from memory cards into a date-organized library",
    )

    p.add_argument("-p", "--profile", help="Use the named profile")
    p.add_argument("--profile-dir", type=Path, default=config.PROFILE_DIR,
                   help=f"Profile directory (default: {config.PROFILE_DIR})")
    p.add_argument("-s", "--source", help="Override source path")
    p.add_argument("-d", "--destination", help="Override destination root")
    p.add_argument("-c", "--camera", help="Override camera label")
    p.add_argument("--transfer-mode", choices=["copy", "move"], help="Copy (keep originals) or move")
    p.add_argument("--on-collision", choices=["rename", "replace"], help="File collision handling")
    p.add_argument("-l", "--log-level", choices=list(config.LOG_LEVELS), help="Log level")
    p.add_argument("-r", "--report", nargs="?", const="", default=None,
                   help=f"Save a text report (optional filename, stored in {config.REPORT_DIR})")
    p.add_argument("--csv", type=Path, default=None, help="Also write a per-file CSV report")
    p.add_argument("--workers", type=int, default=1, help="Groups transferred in parallel (default: 1)")
    p.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    return p.parse_args(argv)


def build_profile_data(args, store: ProfileStore) -> dict:
    """Named profile (if any) with command line overrides applied."""
    data = dict(store.load(args.profile)) if args.profile else {}

    overrides = {
        'sourcePath': args.source,
        'destinationRoot': args.destination,
        'cameraLabel': args.camera,
        'transferMode': args.transfer_mode,
        'onCollision': args.on_collision,
        'logLevel': args.log_level,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return data


def report_path(requested: str) -> Path:
    if requested:
        p = Path(requested)
        return p if p.is_absolute() else config.REPORT_DIR / p
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    return config.REPORT_DIR / f"import-{stamp}.txt"


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        profile = validate_profile(build_profile_data(args, ProfileStore(args.profile_dir)))
    except ConfigurationError as e:
        setup_logging()
        logging.error(f"Configuration error: {e}")
        return 1

    setup_logging(profile.log_level, args.log_file)

    if not profile.source_path.is_dir():
        logging.error(f"Source path {profile.source_path} is not a directory")
        return 1

    app = CardIngestApp()
    try:
        report = app.run_import(profile, max_workers=max(1, args.workers), progress=not args.no_progress)
    except KeyboardInterrupt:
        logging.warning("Import cancelled by user.")
        return 1
    except Exception:
        logging.exception("Fatal error during import.")
        return 1

    print(report.render_text(detailed=profile.log_level == "debug"))

    if args.report is not None:
        report.write_text(report_path(args.report), detailed=profile.log_level == "debug")
    if args.csv:
        report.write_csv(args.csv)

    return 0


if __name__ == "__main__":
    sys.exit(main())
