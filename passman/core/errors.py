"""
Error taxonomy for the vault engine.

Every failure the engine can report is a subclass of PassmanError so
callers can catch the whole family or a single condition. The engine only
classifies; presenting the error is the caller's job.
"""

from typing import Optional


class PassmanError(Exception):
    """Base class for all vault engine errors."""


class VaultLocked(PassmanError):
    """Operation needs an unlocked session."""

    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class WrongMasterPasswordOrCorrupt(PassmanError):
    """AEAD authentication failed: wrong password or damaged ciphertext."""

    def __init__(
        self,
        message: str = "Invalid master password or corrupted vault",
        remaining_attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.remaining_attempts = remaining_attempts


class IntegrityFailure(PassmanError):
    """The v2 integrity tag did not match; the file was altered."""

    def __init__(
        self,
        message: str = "Vault integrity check failed, the file may have been tampered with",
        remaining_attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.remaining_attempts = remaining_attempts


class VaultCorrupted(PassmanError):
    """Structural parse failure. Not a password problem."""


class VaultExists(PassmanError):
    """Refusing to create a vault over an existing file."""


class LockedOut(PassmanError):
    """Too many failed unlocks; a backoff window is active."""

    def __init__(self, remaining_secs: float):
        self.remaining_secs = remaining_secs
        if remaining_secs > 60:
            message = f"Too many failed attempts. Try again in {int(remaining_secs // 60) + 1} minutes."
        else:
            message = f"Too many failed attempts. Try again in {int(remaining_secs) + 1} seconds."
        super().__init__(message)


class EntryNotFound(PassmanError, KeyError):
    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry '{entry_id}' not found")

    def __str__(self):
        return self.args[0]


class VaultIOError(PassmanError):
    """Persistence failed. The original OSError is chained as __cause__."""


class ConfigError(PassmanError):
    """Configuration document could not be loaded."""


class KdfParameterError(PassmanError, ValueError):
    """Key derivation parameters are malformed or below the safety floor."""


class WeakPasswordError(PassmanError, ValueError):
    """Password shorter than the configured minimum."""


class ClipboardError(PassmanError):
    """System clipboard could not be read or written."""
