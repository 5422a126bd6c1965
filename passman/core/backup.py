"""
Timestamped vault backups.

Backups are byte copies of the encrypted vault named
<stem>.backup.<UTC timestamp>, so sorting by name sorts by age.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from passman.constants import BACKUP_DIR_NAME, MAX_BACKUPS
from passman.core.errors import VaultIOError
from passman.core.log import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def backup_directory(vault_path: PathLike, backup_dir: Optional[PathLike] = None) -> Path:
    if backup_dir is not None:
        return Path(backup_dir)
    return Path(vault_path).parent / BACKUP_DIR_NAME


def _prefix(vault_path: Path) -> str:
    return f"{vault_path.stem}.backup."


def create_backup(
    vault_path: PathLike,
    backup_dir: Optional[PathLike] = None,
    retention: int = MAX_BACKUPS,
) -> Path:
    """
    Copy the current vault into the backup directory and prune old copies.
    Returns path to backup file.
    """
    from passman.core.storage import atomic_write

    vault_path = Path(vault_path)
    target_dir = backup_directory(vault_path, backup_dir)
    try:
        data = vault_path.read_bytes()
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise VaultIOError(f"Cannot back up {vault_path}: {e}") from e

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    backup_path = target_dir / f"{_prefix(vault_path)}{timestamp}"
    counter = 1
    while backup_path.exists():
        backup_path = target_dir / f"{_prefix(vault_path)}{timestamp}-{counter}"
        counter += 1

    atomic_write(backup_path, data)
    logger.info("Created backup %s", backup_path)

    prune_backups(vault_path, backup_dir=backup_dir, retention=retention)
    return backup_path


def list_backups(vault_path: PathLike, backup_dir: Optional[PathLike] = None) -> List[Path]:
    """Backups of this vault, newest first."""
    vault_path = Path(vault_path)
    target_dir = backup_directory(vault_path, backup_dir)
    if not target_dir.is_dir():
        return []
    prefix = _prefix(vault_path)
    backups = [p for p in target_dir.iterdir() if p.is_file() and p.name.startswith(prefix)]
    return sorted(backups, key=lambda p: p.name, reverse=True)


def prune_backups(
    vault_path: PathLike,
    backup_dir: Optional[PathLike] = None,
    retention: int = MAX_BACKUPS,
) -> List[Path]:
    """Delete all but the newest `retention` backups. Returns the removed paths."""
    if retention < 1:
        raise ValueError("retention must be at least 1")

    removed = []
    for old in list_backups(vault_path, backup_dir)[retention:]:
        try:
            old.unlink()
        except OSError as e:
            logger.warning("Could not remove old backup %s: %s", old, e)
            continue
        removed.append(old)
    if removed:
        logger.info("Pruned %d old backup(s)", len(removed))
    return removed


def restore_backup(
    backup_path: PathLike,
    vault_path: PathLike,
    master_password: str,
    backup_dir: Optional[PathLike] = None,
    retention: int = MAX_BACKUPS,
) -> Path:
    """
    Restore vault from a backup file.

    The backup must open with master_password. The current vault, if any,
    is backed up before it is replaced.
    """
    from passman.core.storage import atomic_write, verify_vault

    backup_path = Path(backup_path)
    vault_path = Path(vault_path)
    verify_vault(backup_path, master_password)

    try:
        data = backup_path.read_bytes()
    except OSError as e:
        raise VaultIOError(f"Cannot read backup {backup_path}: {e}") from e

    if vault_path.exists():
        create_backup(vault_path, backup_dir=backup_dir, retention=retention)

    atomic_write(vault_path, data)
    logger.info("Restored %s from backup %s", vault_path, backup_path)
    return vault_path
