"""
Vault store: the only code that reads or writes vault files.

Writes go through atomic_write, so a crash leaves either the old file or
the new one on disk, never a mix.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from passman.constants import FORMAT_V1, LATEST_FORMAT
from passman.core import codec
from passman.core.crypto import KdfParams, derive_keys, generate_salt
from passman.core.errors import (
    IntegrityFailure,
    VaultExists,
    VaultIOError,
    WrongMasterPasswordOrCorrupt,
)
from passman.core.log import get_logger
from passman.core.memory_security import DerivedKeys
from passman.core.model import EntryCollection
from passman.core.vault_file import VaultFile, VaultV2, parse_vault

logger = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class LoadedVault:
    entries: EntryCollection
    keys: DerivedKeys
    salt: bytes
    params: KdfParams
    format_version: int

    def wipe(self):
        self.entries.wipe()
        self.keys.wipe()


@dataclass(frozen=True)
class VaultInfo:
    path: Path
    format_version: int
    params: KdfParams
    size: int


def _fsync_directory(directory: Path):
    if os.name == "nt":
        return
    fd = os.open(str(directory), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: PathLike, data: bytes) -> None:
    """
    Atomically replace path with data.

    Uses a temp file in the same directory + fsync + rename. If anything
    fails before the rename the original file is untouched.
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")

    try:
        temp_fd, temp_path = tempfile.mkstemp(dir=str(directory), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise VaultIOError(f"Cannot create temporary file next to {path}: {e}") from e

    try:
        with os.fdopen(temp_fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, str(path))
    except OSError as e:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        except OSError as cleanup_error:
            logger.warning("Could not remove temporary file %s: %s", temp_path, cleanup_error)
        raise VaultIOError(f"Failed to write {path}: {e}") from e

    # The new file is already in place; a failure here is still reported
    try:
        _fsync_directory(directory)
    except OSError as e:
        raise VaultIOError(f"Wrote {path} but could not sync its directory: {e}") from e


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise VaultIOError(f"Cannot read vault {path}: {e}") from e


def _verify_v2(vault: VaultV2, keys: DerivedKeys) -> None:
    try:
        vault.verify(keys)
    except IntegrityFailure:
        # The tag alone cannot tell a wrong password from tampering. If the
        # ciphertext still opens, the keys are right and the file was altered.
        if vault.ciphertext_authenticates(keys):
            raise
        raise WrongMasterPasswordOrCorrupt() from None


def _open(vault: VaultFile, keys: DerivedKeys) -> EntryCollection:
    if vault.format_version == FORMAT_V1:
        return vault.open(keys)
    _verify_v2(vault, keys)
    return codec.decrypt(vault.ciphertext, keys.encryption, vault.nonce, aad=vault.header)


def load_vault(path: PathLike, master_password: str) -> LoadedVault:
    """Read, parse, derive keys, verify and decrypt a vault of either format."""
    path = Path(path)
    vault = parse_vault(_read_bytes(path))
    keys = derive_keys(master_password, vault.salt, vault.params)
    try:
        entries = _open(vault, keys)
    except BaseException:
        keys.wipe()
        raise

    if vault.format_version < LATEST_FORMAT:
        logger.warning(
            "Loaded legacy format v%d vault %s; it will be rewritten as v%d on next save",
            vault.format_version, path, LATEST_FORMAT,
        )
    return LoadedVault(entries, keys, vault.salt, vault.params, vault.format_version)


def save_vault(path: PathLike, entries: EntryCollection, keys: DerivedKeys, salt: bytes, params: KdfParams) -> VaultV2:
    """Write a full snapshot in the latest format under a fresh nonce."""
    path = Path(path)
    vault = VaultV2.seal(entries, keys, salt, params)
    atomic_write(path, vault.to_bytes())
    logger.info("Saved vault %s (%d entries)", path, len(entries))
    return vault


def create_vault(path: PathLike, master_password: str, params: Optional[KdfParams] = None) -> LoadedVault:
    path = Path(path)
    if path.exists():
        raise VaultExists(f"Vault already exists: {path}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise VaultIOError(f"Cannot create vault directory {path.parent}: {e}") from e

    params = params or KdfParams()
    salt = generate_salt()
    keys = derive_keys(master_password, salt, params)
    entries = EntryCollection()
    try:
        save_vault(path, entries, keys, salt, params)
    except BaseException:
        keys.wipe()
        raise
    logger.info("Created vault %s", path)
    return LoadedVault(entries, keys, salt, params, LATEST_FORMAT)


def change_master_password(
    path: PathLike,
    old_password: str,
    new_password: str,
    params: Optional[KdfParams] = None,
    backup_dir: Optional[PathLike] = None,
    retention: Optional[int] = None,
) -> LoadedVault:
    """
    Re-key a vault under a new password and a new salt.

    A backup of the current file is taken first, so the old password can
    still open that copy if anything goes wrong afterwards.
    """
    from passman.core.backup import create_backup

    path = Path(path)
    loaded = load_vault(path, old_password)
    try:
        backup_kwargs = {} if retention is None else {"retention": retention}
        create_backup(path, backup_dir=backup_dir, **backup_kwargs)

        params = params or loaded.params
        salt = generate_salt()
        keys = derive_keys(new_password, salt, params)
        try:
            save_vault(path, loaded.entries, keys, salt, params)
        except BaseException:
            keys.wipe()
            raise
    except BaseException:
        loaded.wipe()
        raise

    loaded.keys.wipe()
    logger.info("Master password changed for %s", path)
    return LoadedVault(loaded.entries, keys, salt, params, LATEST_FORMAT)


def read_vault_info(path: PathLike) -> VaultInfo:
    """Header-only inspection, no password needed."""
    path = Path(path)
    raw = _read_bytes(path)
    vault = parse_vault(raw)
    return VaultInfo(path, vault.format_version, vault.params, len(raw))


def verify_vault(path: PathLike, master_password: str) -> bool:
    """
    Check the vault against master_password without decrypting entries.

    v2 runs the integrity check; v1 has none, so its AEAD tag is checked
    instead. Failures propagate as the same errors load_vault raises.
    """
    vault = parse_vault(_read_bytes(Path(path)))
    keys = derive_keys(master_password, vault.salt, vault.params)
    try:
        if vault.format_version == FORMAT_V1:
            if not codec.authenticates(vault.ciphertext, keys.encryption, vault.nonce):
                raise WrongMasterPasswordOrCorrupt()
        else:
            _verify_v2(vault, keys)
    finally:
        keys.wipe()
    return True
