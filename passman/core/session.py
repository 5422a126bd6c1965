"""
Session Manager for passman
Gates all vault access behind unlock, auto-lock and failed-attempt lockout
"""

import enum
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from passman.constants import BASE_LOCKOUT_SECS, LATEST_FORMAT, MAX_LOCKOUT_SECS
from passman.core import storage
from passman.core.backup import create_backup
from passman.core.config import PassmanConfig
from passman.core.crypto import KdfParams, check_password_length, generate_password
from passman.core.errors import (
    ClipboardError,
    IntegrityFailure,
    LockedOut,
    VaultLocked,
    WrongMasterPasswordOrCorrupt,
)
from passman.core.log import get_logger
from passman.core.model import Entry

logger = get_logger(__name__)


class SessionState(enum.Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


def lockout_backoff(failed_attempts: int, max_failed_attempts: int) -> float:
    """Seconds to wait after `failed_attempts` failures, doubling from the threshold."""
    exponent = max(0, failed_attempts - max_failed_attempts)
    # Cap the exponent before raising so huge counts stay cheap
    if exponent > 32:
        return float(MAX_LOCKOUT_SECS)
    return float(min(BASE_LOCKOUT_SECS * 2 ** exponent, MAX_LOCKOUT_SECS))


class Session:
    """
    One unlocked-or-locked view of a vault file.

    Not thread-safe; the caller serializes calls. Every public call first
    checks for inactivity and locks if the timeout has passed.
    """

    def __init__(
        self,
        vault_path: Union[str, Path],
        config: Optional[PassmanConfig] = None,
        clipboard=None,
        clock: Callable[[], float] = time.monotonic,
        kdf_params: Optional[KdfParams] = None,
    ):
        self.vault_path = Path(vault_path)
        self.config = config or PassmanConfig()
        self._clipboard = clipboard
        self._clock = clock
        self._kdf_params = kdf_params

        self._state = SessionState.LOCKED
        self._loaded: Optional[storage.LoadedVault] = None
        self._last_activity: Optional[float] = None
        self._failed_attempts = 0
        self._locked_out_until: Optional[float] = None

    # Lifecycle

    def create(self, master_password: str) -> None:
        """Create a new vault file and unlock it."""
        self._check_inactivity()
        check_password_length(master_password, self.config.min_password_length)
        self.lock()
        loaded = storage.create_vault(self.vault_path, master_password, self._kdf_params)
        self._adopt(loaded)

    def unlock(self, master_password: str) -> None:
        self._check_inactivity()
        self._refuse_if_locked_out()
        self.lock()

        try:
            loaded = storage.load_vault(self.vault_path, master_password)
        except (WrongMasterPasswordOrCorrupt, IntegrityFailure) as e:
            self._record_failure(e)
            raise

        self._failed_attempts = 0
        self._locked_out_until = None
        self._adopt(loaded)

    def lock(self) -> None:
        """Wipe keys and entries. Safe to call when already locked."""
        if self._clipboard is not None and self.config.clear_clipboard_on_lock:
            try:
                self._clipboard.clear_now()
            except ClipboardError as e:
                logger.warning("Could not clear clipboard on lock: %s", e)

        was_unlocked = self._state is SessionState.UNLOCKED
        self._wipe()
        self._state = SessionState.LOCKED
        self._last_activity = None
        if was_unlocked:
            logger.info("Vault %s locked", self.vault_path)

    # Reads

    def list_entries(self) -> List[Entry]:
        entries = self._require_unlocked().entries
        return [e.copy() for e in sorted(entries, key=lambda e: (e.name.lower(), e.id))]

    def get_entry(self, entry_id: str) -> Entry:
        return self._require_unlocked().entries.get(entry_id).copy()

    def find_entries(self, text: str) -> List[Entry]:
        entries = self._require_unlocked().entries
        found = sorted(entries.find(text), key=lambda e: (e.name.lower(), e.id))
        return [e.copy() for e in found]

    # Mutations

    def add_entry(self, name: str, username: str = "", secret: str = "", notes: str = "",
                  url: str = "", tags: Optional[List[str]] = None) -> Entry:
        entries = self._require_unlocked().entries
        entry = entries.add(name, username=username, secret=secret, notes=notes, url=url, tags=tags)
        try:
            self._save()
        except BaseException:
            entries.discard_new(entry.id)
            raise
        logger.info("Added entry %s", entry.id)
        return entry.copy()

    def edit_entry(self, entry_id: str, **changes) -> Entry:
        entries = self._require_unlocked().entries
        before = entries.get(entry_id).copy()
        entry = entries.update(entry_id, **changes)
        try:
            self._save()
        except BaseException:
            entries.replace_entry(before)
            raise
        logger.info("Updated entry %s", entry_id)
        return entry.copy()

    def remove_entry(self, entry_id: str) -> None:
        entries = self._require_unlocked().entries
        removed = entries.remove(entry_id)
        try:
            self._save()
        except BaseException:
            entries.restore(removed)
            raise
        logger.info("Removed entry %s", entry_id)

    def change_master_password(self, old_password: str, new_password: str) -> None:
        """
        Re-key the vault. The old password is checked against the file and a
        wrong one counts toward lockout like a failed unlock.
        """
        loaded = self._require_unlocked()
        self._refuse_if_locked_out()
        check_password_length(new_password, self.config.min_password_length)

        try:
            rekeyed = storage.change_master_password(
                self.vault_path,
                old_password,
                new_password,
                params=loaded.params,
                backup_dir=self.config.backup.directory,
                retention=self.config.backup.max_backups,
            )
        except (WrongMasterPasswordOrCorrupt, IntegrityFailure) as e:
            self._record_failure(e)
            raise

        self._failed_attempts = 0
        self._locked_out_until = None
        loaded.wipe()
        self._loaded = rekeyed

    # Helpers for callers

    def generate_password(self, length: Optional[int] = None) -> str:
        self._check_inactivity()
        if self._state is SessionState.UNLOCKED:
            self._touch()
        return generate_password(
            length, policy=self.config.password, min_length=self.config.min_password_length
        )

    def copy_secret(self, entry_id: str) -> None:
        entry = self._require_unlocked().entries.get(entry_id)
        self._get_clipboard().copy_secret(entry.secret)
        logger.info("Copied secret of entry %s to clipboard", entry_id)

    # Introspection

    @property
    def state(self) -> SessionState:
        self._check_inactivity()
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self.state is SessionState.UNLOCKED

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.config.max_failed_attempts - self._failed_attempts)

    @property
    def format_version(self) -> Optional[int]:
        self._check_inactivity()
        return self._loaded.format_version if self._loaded is not None else None

    def lockout_remaining(self) -> float:
        if self._locked_out_until is None:
            return 0.0
        return max(0.0, self._locked_out_until - self._clock())

    def time_until_lock(self) -> Optional[float]:
        """Seconds until auto-lock, 0 when locked, None when auto-lock is off."""
        self._check_inactivity()
        if self._state is not SessionState.UNLOCKED:
            return 0.0
        if self.config.lock_timeout_secs <= 0:
            return None
        elapsed = self._clock() - self._last_activity
        return max(0.0, self.config.lock_timeout_secs - elapsed)

    # Internals

    def _touch(self):
        self._last_activity = self._clock()

    def _check_inactivity(self):
        if self._state is not SessionState.UNLOCKED:
            return
        timeout = self.config.lock_timeout_secs
        if timeout > 0 and self._clock() - self._last_activity >= timeout:
            logger.info("Auto-locking %s after %ss of inactivity", self.vault_path, timeout)
            self.lock()

    def _require_unlocked(self) -> storage.LoadedVault:
        self._check_inactivity()
        if self._state is not SessionState.UNLOCKED or self._loaded is None:
            raise VaultLocked()
        self._touch()
        return self._loaded

    def _refuse_if_locked_out(self):
        if self._locked_out_until is None:
            return
        now = self._clock()
        if now >= self._locked_out_until:
            return
        # A refused attempt still counts and pushes the window out
        self._failed_attempts += 1
        self._locked_out_until = now + lockout_backoff(
            self._failed_attempts, self.config.max_failed_attempts
        )
        remaining = self._locked_out_until - now
        logger.warning(
            "Attempt refused during lockout (%d failures); %.0fs remaining",
            self._failed_attempts, remaining,
        )
        raise LockedOut(remaining)

    def _record_failure(self, error):
        self._failed_attempts += 1
        maximum = self.config.max_failed_attempts
        error.remaining_attempts = max(0, maximum - self._failed_attempts)
        logger.warning("Failed unlock attempt %d of %d", self._failed_attempts, maximum)
        if self._failed_attempts >= maximum:
            wait = lockout_backoff(self._failed_attempts, maximum)
            self._locked_out_until = self._clock() + wait
            logger.warning("Too many failed attempts; locked out for %.0fs", wait)

    def _adopt(self, loaded: storage.LoadedVault):
        self._loaded = loaded
        self._state = SessionState.UNLOCKED
        self._touch()
        logger.info("Vault %s unlocked (format v%d)", self.vault_path, loaded.format_version)

    def _save(self):
        loaded = self._loaded
        backup = self.config.backup
        if backup.backup_on_save and self.vault_path.exists():
            create_backup(self.vault_path, backup_dir=backup.directory, retention=backup.max_backups)

        storage.save_vault(self.vault_path, loaded.entries, loaded.keys, loaded.salt, loaded.params)
        if loaded.format_version < LATEST_FORMAT:
            logger.info(
                "Migrated %s from format v%d to v%d", self.vault_path, loaded.format_version, LATEST_FORMAT
            )
            loaded.format_version = LATEST_FORMAT

    def _get_clipboard(self):
        if self._clipboard is None:
            from passman.services.clipboard import SecureClipboard

            self._clipboard = SecureClipboard(self.config.clipboard_timeout_secs, clock=self._clock)
        return self._clipboard

    def _wipe(self):
        loaded = getattr(self, "_loaded", None)
        if loaded is not None:
            loaded.wipe()
        self._loaded = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.lock()
        return False

    def __del__(self):
        self._wipe()

    def __repr__(self):
        return f"Session({str(self.vault_path)!r}, state={self._state.value})"
