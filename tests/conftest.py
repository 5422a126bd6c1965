"""Pytest fixtures and utilities for passman tests."""

import logging
import secrets
import struct
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from passman.core import codec
from passman.core.config import BackupSettings, PassmanConfig
from passman.core.crypto import KdfParams
from passman.core.session import Session
from passman.core.storage import create_vault

# Cheapest parameters the floor allows, so tests stay fast
FAST_PARAMS = KdfParams(time_cost=1, memory_cost=8192, parallelism=1)
PASSWORD = "correct horse battery"
WRONG_PASSWORD = "incorrect horse battery"


def legacy_v1_bytes(entries, keys, salt, params=FAST_PARAMS) -> bytes:
    """Build a format v1 vault the way older releases wrote it: no AAD, no tag."""
    nonce = secrets.token_bytes(12)
    header = b"".join(
        [
            b"PMAN",
            bytes([1, len(salt)]),
            salt,
            struct.pack("<III", params.time_cost, params.memory_cost, params.parallelism),
            nonce,
        ]
    )
    return header + codec.encrypt(entries, keys.encryption, nonce)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class MemoryClipboard:
    """In-memory clipboard backend."""

    def __init__(self):
        self.text = ""
        self.copies = []

    def copy(self, text: str):
        self.text = text
        self.copies.append(text)

    def paste(self) -> str:
        return self.text


class ManualTimer:
    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self, force: bool = False):
        """Run the callback as the timer thread would. force ignores cancel()."""
        if self.cancelled and not force:
            return
        self.function(*self.args, **self.kwargs)


class ManualTimerFactory:
    """Stands in for threading.Timer and keeps every timer it creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = ManualTimer(interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]


@pytest.fixture
def temp_vault_dir():
    """Create a temporary directory for vault files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def vault_path(temp_vault_dir):
    return temp_vault_dir / "vault.dat"


@pytest.fixture
def fast_params():
    return FAST_PARAMS


@pytest.fixture
def existing_vault(vault_path):
    """An empty v2 vault on disk; yields its path."""
    loaded = create_vault(vault_path, PASSWORD, FAST_PARAMS)
    loaded.wipe()
    return vault_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clipboard_backend():
    return MemoryClipboard()


@pytest.fixture
def timer_factory():
    return ManualTimerFactory()


@pytest.fixture
def config(temp_vault_dir):
    return PassmanConfig(
        lock_timeout_secs=300,
        clipboard_timeout_secs=30,
        max_failed_attempts=3,
        min_password_length=12,
        backup=BackupSettings(backup_on_save=False, directory=str(temp_vault_dir / "backups")),
    )


@pytest.fixture
def make_session(vault_path, config, clock):
    """Factory for sessions on the temp vault with a fake clock."""
    sessions = []

    def _make(**overrides):
        cfg = overrides.pop("config", config)
        session = Session(
            overrides.pop("path", vault_path),
            config=cfg,
            clock=overrides.pop("clock", clock),
            kdf_params=FAST_PARAMS,
            **overrides,
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.lock()


@pytest.fixture
def unlocked_session(make_session):
    session = make_session()
    session.create(PASSWORD)
    return session


@pytest.fixture
def passman_logger():
    """The passman logger, restored to its prior state after the test."""
    logger = logging.getLogger("passman")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in saved[0]:
            handler.close()
    for handler in saved[0]:
        logger.addHandler(handler)
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def with_backup(config: PassmanConfig, **changes) -> PassmanConfig:
    return replace(config, backup=replace(config.backup, **changes))
