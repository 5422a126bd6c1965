"""
On-disk vault formats.

    magic     4   b"PMAN"
    version   1   1 or 2
    salt_len  1
    salt      salt_len
    params    12  time_cost, memory_cost, parallelism (u32 little-endian)
    nonce     12
    tag       32  v2 only, HMAC-SHA256(integrity_key, header || ciphertext)
    ciphertext    AES-256-GCM, rest of file

The header is everything from the magic through the nonce. Version 2 also
binds the header to the ciphertext as AEAD associated data.
"""

import secrets
import struct
from dataclasses import dataclass
from typing import Union

from passman.constants import (
    FORMAT_V1,
    FORMAT_V2,
    GCM_TAG_SIZE,
    INTEGRITY_TAG_SIZE,
    NONCE_SIZE,
    SALT_SIZE,
    VAULT_MAGIC,
)
from passman.core import codec
from passman.core.crypto import KdfParams
from passman.core.errors import KdfParameterError, VaultCorrupted
from passman.core.memory_security import DerivedKeys
from passman.core.model import EntryCollection

_PARAMS = struct.Struct("<III")


def _header(version: int, salt: bytes, params: KdfParams, nonce: bytes) -> bytes:
    return b"".join(
        [
            VAULT_MAGIC,
            bytes([version, len(salt)]),
            salt,
            _PARAMS.pack(params.time_cost, params.memory_cost, params.parallelism),
            nonce,
        ]
    )


@dataclass(frozen=True)
class VaultV1:
    """Legacy format: no associated data, no integrity tag. Read-only."""

    salt: bytes
    params: KdfParams
    nonce: bytes
    ciphertext: bytes

    format_version = FORMAT_V1

    def open(self, keys: DerivedKeys) -> EntryCollection:
        return codec.decrypt(self.ciphertext, keys.encryption, self.nonce)


@dataclass(frozen=True)
class VaultV2:
    salt: bytes
    params: KdfParams
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    format_version = FORMAT_V2

    @property
    def header(self) -> bytes:
        return _header(FORMAT_V2, self.salt, self.params, self.nonce)

    def to_bytes(self) -> bytes:
        return self.header + self.tag + self.ciphertext

    def verify(self, keys: DerivedKeys) -> bool:
        return codec.verify_integrity(self.tag, keys.integrity, self.header, self.ciphertext)

    def open(self, keys: DerivedKeys) -> EntryCollection:
        """Verify the integrity tag, then decrypt. Callers classify failures."""
        self.verify(keys)
        return codec.decrypt(self.ciphertext, keys.encryption, self.nonce, aad=self.header)

    def ciphertext_authenticates(self, keys: DerivedKeys) -> bool:
        return codec.authenticates(self.ciphertext, keys.encryption, self.nonce, aad=self.header)

    @classmethod
    def seal(cls, entries: EntryCollection, keys: DerivedKeys, salt: bytes, params: KdfParams) -> "VaultV2":
        """Encrypt a full snapshot under a fresh nonce."""
        nonce = secrets.token_bytes(NONCE_SIZE)
        header = _header(FORMAT_V2, salt, params, nonce)
        ciphertext = codec.encrypt(entries, keys.encryption, nonce, aad=header)
        tag = codec.compute_integrity_tag(keys.integrity, header, ciphertext)
        return cls(salt, params, nonce, tag, ciphertext)

    @classmethod
    def from_v1(cls, legacy: VaultV1, entries: EntryCollection, keys: DerivedKeys) -> "VaultV2":
        """Re-seal the contents of a v1 vault as v2, keeping its salt and params."""
        return cls.seal(entries, keys, legacy.salt, legacy.params)


VaultFile = Union[VaultV1, VaultV2]


def parse_vault(raw: bytes) -> VaultFile:
    """Parse raw file bytes into the matching format variant."""
    min_header = len(VAULT_MAGIC) + 2
    if len(raw) < min_header:
        raise VaultCorrupted("Vault file is truncated")
    if raw[: len(VAULT_MAGIC)] != VAULT_MAGIC:
        raise VaultCorrupted("Not a passman vault (bad magic)")

    pos = len(VAULT_MAGIC)
    version, salt_len = raw[pos], raw[pos + 1]
    pos += 2
    if version not in (FORMAT_V1, FORMAT_V2):
        raise VaultCorrupted(f"Unsupported vault format version {version}")
    if salt_len != SALT_SIZE:
        raise VaultCorrupted(f"Invalid salt length {salt_len}")

    tag_len = INTEGRITY_TAG_SIZE if version == FORMAT_V2 else 0
    if len(raw) < pos + salt_len + _PARAMS.size + NONCE_SIZE + tag_len + GCM_TAG_SIZE:
        raise VaultCorrupted("Vault file is truncated")

    salt = raw[pos : pos + salt_len]
    pos += salt_len
    time_cost, memory_cost, parallelism = _PARAMS.unpack_from(raw, pos)
    pos += _PARAMS.size
    try:
        params = KdfParams(time_cost, memory_cost, parallelism)
    except KdfParameterError as e:
        raise VaultCorrupted(f"Vault has impossible KDF parameters: {e}") from e
    nonce = raw[pos : pos + NONCE_SIZE]
    pos += NONCE_SIZE

    if version == FORMAT_V1:
        return VaultV1(salt, params, nonce, raw[pos:])

    tag = raw[pos : pos + INTEGRITY_TAG_SIZE]
    pos += INTEGRITY_TAG_SIZE
    return VaultV2(salt, params, nonce, tag, raw[pos:])
