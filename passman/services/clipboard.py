"""
Secure clipboard: copy a secret, then clear it after a timeout unless the
user has copied something else in the meantime.

Only a SHA-256 fingerprint of the copied value is kept.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import pyperclip
from cryptography.hazmat.primitives import hashes

from passman.constants import CLIPBOARD_TIMEOUT_SECS
from passman.core.errors import ClipboardError
from passman.core.log import get_logger

logger = get_logger(__name__)


class PyperclipBackend:
    """System clipboard through pyperclip."""

    def copy(self, text: str):
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Clipboard unavailable: {e}") from e

    def paste(self) -> str:
        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Clipboard unavailable: {e}") from e


def fingerprint(text: str) -> bytes:
    h = hashes.Hash(hashes.SHA256())
    h.update(text.encode("utf-8"))
    return h.finalize()


@dataclass
class _PendingClear:
    fingerprint: bytes
    deadline: float
    cancelled: threading.Event = field(default_factory=threading.Event)
    timer: Optional[object] = None


class SecureClipboard:
    def __init__(
        self,
        timeout_secs: float = CLIPBOARD_TIMEOUT_SECS,
        backend=None,
        timer_factory: Callable = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        if timeout_secs < 0:
            raise ValueError("timeout_secs must be >= 0")
        self.timeout_secs = timeout_secs
        self._backend = backend if backend is not None else PyperclipBackend()
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Optional[_PendingClear] = None

    def copy_secret(self, value: str) -> None:
        """Copy value and schedule the clear. A timeout of 0 disables it."""
        with self._lock:
            self._cancel_locked()
            self._backend.copy(value)
            if self.timeout_secs <= 0:
                return

            pending = _PendingClear(fingerprint(value), self._clock() + self.timeout_secs)
            timer = self._timer_factory(self.timeout_secs, self._expire, args=(pending,))
            timer.daemon = True
            pending.timer = timer
            self._pending = pending
            timer.start()
        logger.debug("Clipboard clear scheduled in %ss", self.timeout_secs)

    def clear_now(self) -> bool:
        """
        Run the pending clear immediately.

        Returns True if the clipboard was cleared, False if nothing was
        pending or the clipboard no longer holds the copied secret.
        """
        with self._lock:
            pending = self._pending
            if pending is None:
                return False
            self._cancel_locked()
            return self._clear_if_unchanged(pending.fingerprint)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    @property
    def is_clear_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def remaining_secs(self) -> float:
        with self._lock:
            if self._pending is None:
                return 0.0
            return max(0.0, self._pending.deadline - self._clock())

    def _cancel_locked(self):
        pending = self._pending
        if pending is None:
            return
        pending.cancelled.set()
        if pending.timer is not None:
            pending.timer.cancel()
        self._pending = None

    def _clear_if_unchanged(self, expected: bytes) -> bool:
        current = self._backend.paste()
        if current is None or fingerprint(current) != expected:
            logger.debug("Clipboard contents changed; leaving them alone")
            return False
        self._backend.copy("")
        logger.debug("Clipboard cleared")
        return True

    def _expire(self, pending: _PendingClear):
        with self._lock:
            # A superseded or cancelled clear never touches the clipboard
            if pending.cancelled.is_set() or self._pending is not pending:
                return
            self._pending = None
            try:
                self._clear_if_unchanged(pending.fingerprint)
            except ClipboardError as e:
                logger.warning("Scheduled clipboard clear failed: %s", e)
