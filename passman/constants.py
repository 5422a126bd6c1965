import os
import platform
from pathlib import Path

# Application info
APP_NAME = "passman"
APP_VERSION = "1.0.0"


def _default_config_dir() -> Path:
    system = platform.system().lower()
    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Preferences"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / APP_NAME


CONFIG_DIR = _default_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.json"
BACKUP_DIR_NAME = "backups"

# Vault file layout
VAULT_MAGIC = b"PMAN"
FORMAT_V1 = 1
FORMAT_V2 = 2
LATEST_FORMAT = FORMAT_V2
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
GCM_TAG_SIZE = 16
INTEGRITY_TAG_SIZE = 32
PAYLOAD_SCHEMA = 1

# HKDF labels for the two sub-keys
ENCRYPTION_KEY_INFO = b"passman/v2/encryption"
INTEGRITY_KEY_INFO = b"passman/v2/integrity"

# Argon2id cost parameters
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4
ARGON2_MIN_TIME_COST = 1
ARGON2_MIN_MEMORY_COST = 8192  # 8 MB
ARGON2_MIN_PARALLELISM = 1
ARGON2_MAX_TIME_COST = 64
ARGON2_MAX_MEMORY_COST = 4 * 1024 * 1024  # 4 GB
ARGON2_MAX_PARALLELISM = 64

# Security settings
LOCK_TIMEOUT_SECS = 300
CLIPBOARD_TIMEOUT_SECS = 30
MAX_FAILED_ATTEMPTS = 5
MIN_PASSWORD_LENGTH = 12
BASE_LOCKOUT_SECS = 30
MAX_LOCKOUT_SECS = 3600
MAX_BACKUPS = 10

# Password generator defaults
PASSWORD_DEFAULTS = {
    "length": 20,
    "uppercase": True,
    "lowercase": True,
    "digits": True,
    "symbols": True,
    "exclude_ambiguous": False,
}

LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*()-_=+[]{}|;:,.<>?"
AMBIGUOUS = "0O1lI|"
