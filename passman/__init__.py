"""passman: a local, encrypted password vault engine."""

from passman.constants import APP_VERSION as __version__
from passman.core import (
    PassmanConfig,
    PassmanError,
    Session,
    SessionState,
    load_config_or_default,
)
from passman.core.log import configure_logging

__all__ = [
    "__version__",
    "PassmanConfig",
    "PassmanError",
    "Session",
    "SessionState",
    "configure_logging",
    "load_config_or_default",
]
