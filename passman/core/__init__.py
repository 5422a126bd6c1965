"""
passman Core Module
Exports all core functionality
"""

from passman.core.backup import create_backup, list_backups, prune_backups, restore_backup
from passman.core.codec import (
    compute_integrity_tag,
    decrypt,
    deserialize_entries,
    encrypt,
    serialize_entries,
    verify_integrity,
)
from passman.core.config import (
    BackupSettings,
    PassmanConfig,
    PasswordPolicy,
    load_config,
    load_config_or_default,
    save_config,
)
from passman.core.crypto import KdfParams, derive_keys, generate_password, generate_salt
from passman.core.errors import (
    ClipboardError,
    ConfigError,
    EntryNotFound,
    IntegrityFailure,
    KdfParameterError,
    LockedOut,
    PassmanError,
    VaultCorrupted,
    VaultExists,
    VaultIOError,
    VaultLocked,
    WeakPasswordError,
    WrongMasterPasswordOrCorrupt,
)
from passman.core.memory_security import DerivedKeys, SecureBytes
from passman.core.model import Entry, EntryCollection
from passman.core.session import Session, SessionState
from passman.core.storage import (
    LoadedVault,
    VaultInfo,
    atomic_write,
    change_master_password,
    create_vault,
    load_vault,
    read_vault_info,
    save_vault,
    verify_vault,
)
from passman.core.vault_file import VaultV1, VaultV2, parse_vault

__all__ = [
    "create_backup",
    "list_backups",
    "prune_backups",
    "restore_backup",
    "compute_integrity_tag",
    "decrypt",
    "deserialize_entries",
    "encrypt",
    "serialize_entries",
    "verify_integrity",
    "BackupSettings",
    "PassmanConfig",
    "PasswordPolicy",
    "load_config",
    "load_config_or_default",
    "save_config",
    "KdfParams",
    "derive_keys",
    "generate_password",
    "generate_salt",
    "ClipboardError",
    "ConfigError",
    "EntryNotFound",
    "IntegrityFailure",
    "KdfParameterError",
    "LockedOut",
    "PassmanError",
    "VaultCorrupted",
    "VaultExists",
    "VaultIOError",
    "VaultLocked",
    "WeakPasswordError",
    "WrongMasterPasswordOrCorrupt",
    "DerivedKeys",
    "SecureBytes",
    "Entry",
    "EntryCollection",
    "Session",
    "SessionState",
    "LoadedVault",
    "VaultInfo",
    "atomic_write",
    "change_master_password",
    "create_vault",
    "load_vault",
    "read_vault_info",
    "save_vault",
    "verify_vault",
    "VaultV1",
    "VaultV2",
    "parse_vault",
]
