"""
Import profiles: one YAML file per camera/card workflow.

A profile is validated completely before any scanning starts, so a typo in
`transferMode` or the filename format aborts the run up front instead of
halfway through a card.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Set

import yaml

from . import config
from .exceptions import ConfigurationError
from .models import CollisionPolicy, TransferMode
from .organization.rules import validate_template

REQUIRED_FIELDS = ('sourcePath', 'destinationRoot', 'cameraLabel')


@dataclass(frozen=True)
class ImportProfile:
    source_path: Path
    destination_root: Path
    camera_label: str
    name: Optional[str] = None
    include_extensions: Set[str] = field(default_factory=lambda: set(config.DEFAULT_INCLUDE_EXTS))
    exclude_extensions: Set[str] = field(default_factory=set)
    exclude_folders: Set[str] = field(default_factory=set)
    maintain_file_relationships: bool = True
    primary_extensions: Set[str] = field(default_factory=lambda: set(config.DEFAULT_PRIMARY_EXTS))
    companion_extensions: Set[str] = field(default_factory=lambda: set(config.DEFAULT_COMPANION_EXTS))
    transfer_mode: TransferMode = TransferMode.COPY
    on_collision: CollisionPolicy = CollisionPolicy.RENAME
    use_exif_date: bool = True
    filename_format: str = config.DEFAULT_FILENAME_FORMAT
    log_level: str = "info"


def _ext_set(value: Any, key: str) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigurationError(f"{key} must be a list of extensions")
    exts = set()
    for e in value:
        e = str(e).strip().lower()
        if e:
            exts.add(e if e.startswith('.') else f".{e}")
    return exts


def _enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"Invalid {key} {value!r} (expected one of: {allowed})") from None


def validate_profile(data: Mapping[str, Any]) -> ImportProfile:
    """
    Builds an ImportProfile from the camelCase mapping stored in YAML.

    Raises:
        ConfigurationError: missing required fields, unknown transfer mode,
            collision policy or log level, a bad filename format, a camera
            label with a path separator, or extensions listed as both
            primary and companion.
    """
    missing = [k for k in REQUIRED_FIELDS if not data.get(k)]
    if missing:
        raise ConfigurationError(f"Missing required fields: {', '.join(missing)}")

    # Older profiles carried a boolean instead of a mode
    if 'transferMode' in data:
        mode = _enum(TransferMode, data['transferMode'], 'transferMode')
    elif data.get('copyFiles') is False:
        mode = TransferMode.MOVE
    else:
        mode = TransferMode.COPY

    policy = _enum(CollisionPolicy, data.get('onCollision', 'rename'), 'onCollision')

    log_level = str(data.get('logLevel', 'info')).lower()
    if log_level not in config.LOG_LEVELS:
        raise ConfigurationError(f"Invalid logLevel {log_level!r}")

    template = validate_template(str(data.get('filenameFormat') or config.DEFAULT_FILENAME_FORMAT))

    camera_label = str(data['cameraLabel'])
    if "/" in camera_label or "\\" in camera_label:
        raise ConfigurationError(f"cameraLabel must not contain path separators: {camera_label!r}")

    def ext_setting(key, default):
        return _ext_set(data[key], key) if data.get(key) is not None else set(default)

    primary = ext_setting('primaryExtensions', config.DEFAULT_PRIMARY_EXTS)
    companion = ext_setting('companionExtensions', config.DEFAULT_COMPANION_EXTS)
    overlap = primary & companion
    if overlap:
        raise ConfigurationError(
            f"Extensions cannot be both primary and companion: {', '.join(sorted(overlap))}"
        )

    return ImportProfile(
        name=data.get('name'),
        source_path=Path(str(data['sourcePath'])).expanduser(),
        destination_root=Path(str(data['destinationRoot'])).expanduser(),
        camera_label=camera_label,
        include_extensions=ext_setting('includeExtensions', config.DEFAULT_INCLUDE_EXTS),
        exclude_extensions=_ext_set(data.get('excludeExtensions'), 'excludeExtensions'),
        exclude_folders={str(f) for f in (data.get('excludeFolders') or [])},
        maintain_file_relationships=bool(data.get('maintainFileRelationships', True)),
        primary_extensions=primary,
        companion_extensions=companion,
        transfer_mode=mode,
        on_collision=policy,
        use_exif_date=data.get('useExifDate') is not False,
        filename_format=template,
        log_level=log_level,
    )


class ProfileStore:
    """Reads and writes `<name>.yaml` profiles in one directory."""

    def __init__(self, directory: Path = config.PROFILE_DIR):
        self.directory = Path(directory)

    def load_all(self) -> Dict[str, Dict[str, Any]]:
        if not self.directory.is_dir():
            return {}

        profiles = {}
        for path in sorted(self.directory.iterdir()):
            if path.suffix.lower() not in ('.yaml', '.yml'):
                continue
            with path.open('r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                logging.warning(f"Ignoring profile {path}: not a mapping")
                continue
            profiles[path.stem] = {**data, 'name': path.stem}
        return profiles

    def load(self, name: str) -> Dict[str, Any]:
        profiles = self.load_all()
        if name not in profiles:
            available = ", ".join(profiles) or "none"
            raise ConfigurationError(f"Profile {name!r} not found (available: {available})")
        return profiles[name]

    def save(self, name: str, data: Mapping[str, Any]) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{name}.yaml"
        with path.open('w', encoding='utf-8') as f:
            yaml.safe_dump(dict(data), f, default_flow_style=False)
        logging.info(f"Profile {name!r} saved to {path}")
        return path
