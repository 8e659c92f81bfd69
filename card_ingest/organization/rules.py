import os
import re
from pathlib import Path
from datetime import datetime, timezone

from .. import config
from ..exceptions import ConfigurationError
from ..models import CollisionPolicy, TargetPlan

_PLACEHOLDER = re.compile(r"\{([^{}]*)\}")


def validate_template(template: str) -> str:
    """Rejects templates that would not expand to a plain filename."""
    if not template or not template.strip():
        raise ConfigurationError("Filename format must not be empty")
    unknown = [p for p in _PLACEHOLDER.findall(template) if p not in config.TEMPLATE_PLACEHOLDERS]
    if unknown:
        raise ConfigurationError(
            f"Unknown placeholder(s) in filename format {template!r}: {', '.join(unknown)}"
        )
    if "/" in template or "\\" in template:
        raise ConfigurationError(f"Filename format must not contain path separators: {template!r}")
    return template


class DestinationPlanner:
    """
    Turns a capture time into a dated folder and a template-expanded name.

    Aware timestamps are normalised to UTC; naive ones (EXIF) are used as-is,
    so the same instant always produces the same folder and name.
    """

    def __init__(self, template: str = config.DEFAULT_FILENAME_FORMAT):
        self.template = validate_template(template)

    def plan(self,
             timestamp: datetime,
             camera_label: str,
             source_path: Path,
             destination_root: Path,
             template: str = None) -> TargetPlan:
        template = self.template if template is None else template
        dt = self._normalize(timestamp)

        date_str = dt.strftime(config.DATE_FORMAT)
        time_str = dt.strftime(config.TIME_FORMAT)

        base_name = (template
                     .replace("{date}", date_str)
                     .replace("{time}", time_str)
                     .replace("{camera}", camera_label))

        return TargetPlan(
            target_directory=Path(destination_root) / date_str,
            base_name=base_name,
            filename=f"{base_name}{Path(source_path).suffix}",
        )

    def _normalize(self, dt: datetime) -> datetime:
        if dt.tzinfo is not None:
            return dt.astimezone(timezone.utc)
        return dt


def resolve_collision(folder: Path, filename: str, policy: CollisionPolicy) -> str:
    """
    Picks the name a file will actually be written under.

    replace: the desired name, whatever is there gets overwritten.
    rename:  name.ext, name_1.ext, name_2.ext, ... first one that is free.

    Errors other than "not found" while probing propagate.
    """
    if CollisionPolicy(policy) is CollisionPolicy.REPLACE:
        return filename

    stem = Path(filename).stem
    ext = Path(filename).suffix
    candidate = filename
    counter = 1

    while _exists(Path(folder) / candidate):
        candidate = f"{stem}_{counter}{ext}"
        counter += 1

    return candidate


def _exists(path: Path) -> bool:
    # Path.exists() hides permission errors; only ENOENT means "free"
    try:
        os.lstat(path)
    except FileNotFoundError:
        return False
    return True
