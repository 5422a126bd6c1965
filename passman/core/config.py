"""
Configuration for passman.

The config file is a small JSON object. Unknown keys are ignored and
missing keys fall back to their defaults, so an older file keeps working
after new settings are added.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from passman.constants import (
    CLIPBOARD_TIMEOUT_SECS,
    CONFIG_FILE,
    LOCK_TIMEOUT_SECS,
    MAX_BACKUPS,
    MAX_FAILED_ATTEMPTS,
    MIN_PASSWORD_LENGTH,
    PASSWORD_DEFAULTS,
)
from passman.core.errors import ConfigError
from passman.core.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PasswordPolicy:
    """Character classes and length for generated passwords."""

    length: int = PASSWORD_DEFAULTS["length"]
    uppercase: bool = PASSWORD_DEFAULTS["uppercase"]
    lowercase: bool = PASSWORD_DEFAULTS["lowercase"]
    digits: bool = PASSWORD_DEFAULTS["digits"]
    symbols: bool = PASSWORD_DEFAULTS["symbols"]
    exclude_ambiguous: bool = PASSWORD_DEFAULTS["exclude_ambiguous"]


@dataclass(frozen=True)
class BackupSettings:
    backup_on_save: bool = True
    directory: Optional[str] = None
    max_backups: int = MAX_BACKUPS


@dataclass(frozen=True)
class PassmanConfig:
    lock_timeout_secs: int = LOCK_TIMEOUT_SECS
    clipboard_timeout_secs: int = CLIPBOARD_TIMEOUT_SECS
    clear_clipboard_on_lock: bool = True
    max_failed_attempts: int = MAX_FAILED_ATTEMPTS
    min_password_length: int = MIN_PASSWORD_LENGTH
    password: PasswordPolicy = field(default_factory=PasswordPolicy)
    backup: BackupSettings = field(default_factory=BackupSettings)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "PassmanConfig":
        """Build a config from a parsed JSON object, validating every known key."""
        if not isinstance(data, dict):
            raise ConfigError("Config must be a JSON object")

        values = {}
        for name, minimum in (
            ("lock_timeout_secs", 0),
            ("clipboard_timeout_secs", 0),
            ("max_failed_attempts", 1),
            ("min_password_length", 1),
        ):
            if name in data:
                values[name] = _int_value(data, name, minimum)
        if "clear_clipboard_on_lock" in data:
            values["clear_clipboard_on_lock"] = _bool_value(data, "clear_clipboard_on_lock")

        if "password" in data:
            section = _section(data, "password")
            policy = {}
            if "length" in section:
                policy["length"] = _int_value(section, "length", 1, prefix="password.")
            for name in ("uppercase", "lowercase", "digits", "symbols", "exclude_ambiguous"):
                if name in section:
                    policy[name] = _bool_value(section, name, prefix="password.")
            values["password"] = PasswordPolicy(**policy)

        if "backup" in data:
            section = _section(data, "backup")
            backup = {}
            if "backup_on_save" in section:
                backup["backup_on_save"] = _bool_value(section, "backup_on_save", prefix="backup.")
            if "max_backups" in section:
                backup["max_backups"] = _int_value(section, "max_backups", 1, prefix="backup.")
            if "directory" in section:
                directory = section["directory"]
                if directory is not None and not isinstance(directory, str):
                    raise ConfigError("backup.directory must be a string or null")
                backup["directory"] = directory
            values["backup"] = BackupSettings(**backup)

        return cls(**values)


def _int_value(data: dict, name: str, minimum: int, prefix: str = "") -> int:
    value = data[name]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{prefix}{name} must be an integer")
    if value < minimum:
        raise ConfigError(f"{prefix}{name} must be >= {minimum}")
    return value


def _bool_value(data: dict, name: str, prefix: str = "") -> bool:
    value = data[name]
    if not isinstance(value, bool):
        raise ConfigError(f"{prefix}{name} must be true or false")
    return value


def _section(data: dict, name: str) -> dict:
    section = data[name]
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a JSON object")
    return section


def default_config_path() -> Path:
    return CONFIG_FILE


def load_config(path: Optional[Union[str, Path]] = None) -> PassmanConfig:
    """Load and validate a config file. Raises ConfigError on any problem."""
    path = Path(path) if path is not None else default_config_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    return PassmanConfig.from_dict(data)


def load_config_or_default(
    path: Optional[Union[str, Path]] = None,
) -> Tuple[PassmanConfig, Optional[ConfigError]]:
    """
    Load the config, falling back to defaults.

    A missing file is not an error. Anything else is returned next to the
    default config so the caller can decide whether to warn.
    """
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        return PassmanConfig(), None
    try:
        return load_config(path), None
    except ConfigError as e:
        logger.warning("Using default config: %s", e)
        return PassmanConfig(), e


def save_config(config: PassmanConfig, path: Optional[Union[str, Path]] = None) -> Path:
    from passman.core.storage import atomic_write

    path = Path(path) if path is not None else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(config.to_dict(), indent=2, sort_keys=True).encode("utf-8")
    atomic_write(path, data)
    logger.info("Saved config to %s", path)
    return path
