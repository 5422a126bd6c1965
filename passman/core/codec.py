"""
Vault codec: entries <-> canonical JSON <-> AES-256-GCM ciphertext,
plus the HMAC-SHA256 integrity tag used by format v2.
"""

import json
from typing import Optional

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from passman.constants import NONCE_SIZE, PAYLOAD_SCHEMA
from passman.core.errors import IntegrityFailure, VaultCorrupted, WrongMasterPasswordOrCorrupt
from passman.core.model import Entry, EntryCollection


def serialize_entries(entries: EntryCollection) -> bytes:
    payload = {"schema": PAYLOAD_SCHEMA}
    payload.update(entries.to_dict())
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def deserialize_entries(data: bytes) -> EntryCollection:
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise VaultCorrupted(f"Vault payload is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise VaultCorrupted("Vault payload must be a JSON object")
    if payload.get("schema") != PAYLOAD_SCHEMA:
        raise VaultCorrupted(f"Unsupported payload schema: {payload.get('schema')!r}")

    raw_entries = payload.get("entries", [])
    retired = payload.get("retired_ids", [])
    if not isinstance(raw_entries, list) or not isinstance(retired, list):
        raise VaultCorrupted("Vault payload has an invalid shape")

    try:
        entries = [Entry.from_dict(item) for item in raw_entries]
        return EntryCollection(entries, retired)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise VaultCorrupted(f"Vault payload has an invalid entry: {e}") from e


def _check_nonce(nonce: bytes):
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes")


def encrypt(entries: EntryCollection, key: bytes, nonce: bytes, aad: Optional[bytes] = None) -> bytes:
    """Encrypt the serialized entries. The caller supplies a fresh nonce every time."""
    _check_nonce(nonce)
    return AESGCM(key).encrypt(nonce, serialize_entries(entries), aad)


def _open(ciphertext: bytes, key: bytes, nonce: bytes, aad: Optional[bytes]) -> bytes:
    _check_nonce(nonce)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, aad)
    except InvalidTag:
        raise WrongMasterPasswordOrCorrupt() from None


def decrypt(ciphertext: bytes, key: bytes, nonce: bytes, aad: Optional[bytes] = None) -> EntryCollection:
    """
    Decrypt and parse a vault payload.

    Any authentication failure raises WrongMasterPasswordOrCorrupt; a wrong
    password and a damaged ciphertext are indistinguishable here.
    """
    return deserialize_entries(_open(ciphertext, key, nonce, aad))


def authenticates(ciphertext: bytes, key: bytes, nonce: bytes, aad: Optional[bytes] = None) -> bool:
    """True if the ciphertext opens under key. The plaintext is discarded."""
    try:
        _open(ciphertext, key, nonce, aad)
    except WrongMasterPasswordOrCorrupt:
        return False
    return True


def _mac(key: bytes, metadata: bytes, ciphertext: bytes) -> hmac.HMAC:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(metadata)
    h.update(ciphertext)
    return h


def compute_integrity_tag(key: bytes, metadata: bytes, ciphertext: bytes) -> bytes:
    return _mac(key, metadata, ciphertext).finalize()


def verify_integrity(tag: bytes, key: bytes, metadata: bytes, ciphertext: bytes) -> bool:
    try:
        _mac(key, metadata, ciphertext).verify(tag)
    except InvalidSignature:
        raise IntegrityFailure() from None
    return True
