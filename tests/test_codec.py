"""Unit tests for the vault codec and entry model."""

import json
import secrets
from datetime import datetime, timezone

import pytest

from passman.core.codec import (
    compute_integrity_tag,
    decrypt,
    deserialize_entries,
    encrypt,
    serialize_entries,
    verify_integrity,
)
from passman.core.errors import (
    EntryNotFound,
    IntegrityFailure,
    VaultCorrupted,
    WrongMasterPasswordOrCorrupt,
)
from passman.core.model import Entry, EntryCollection


@pytest.fixture
def entries():
    collection = EntryCollection()
    collection.add("GitHub", username="octo", secret="hunter2-but-longer", url="https://github.com", tags=["dev"])
    collection.add("Bank", username="me", secret="s3cr3t!", notes="PIN 1234")
    return collection


@pytest.fixture
def key():
    return secrets.token_bytes(32)


class TestEntryModel:
    def test_repr_hides_secrets(self):
        entry = Entry(id="abc", name="Mail", secret="topsecret", notes="private note")
        text = repr(entry)
        assert "topsecret" not in text
        assert "private note" not in text
        assert "Mail" in text

    def test_timestamps_are_utc(self, entries):
        for entry in entries:
            assert entry.created_at.tzinfo is not None
            assert entry.created_at.utcoffset().total_seconds() == 0

    def test_updated_at_strictly_increases(self, entries):
        entry_id = entries.ids()[0]
        previous = entries.get(entry_id).updated_at
        for i in range(50):
            entries.update(entry_id, notes=str(i))
            current = entries.get(entry_id).updated_at
            assert current > previous
            previous = current

    def test_update_rejects_unknown_fields(self, entries):
        with pytest.raises(ValueError):
            entries.update(entries.ids()[0], id="new-id")

    def test_none_optional_fields_become_empty(self, entries):
        entry = entries.add("Mail", username=None, notes=None, url=None, tags=None)
        assert (entry.username, entry.notes, entry.url, entry.tags) == ("", "", "", [])
        entries.update(entry.id, url=None)
        assert entries.get(entry.id).url == ""
        restored = deserialize_entries(serialize_entries(entries))
        assert restored.get(entry.id).notes == ""

    @pytest.mark.parametrize(
        "kwargs",
        [{"name": None}, {"name": 5}, {"secret": 1234}, {"url": b"https://x"}, {"tags": ["a", 1]}, {"tags": "abc"}],
    )
    def test_add_rejects_values_that_would_not_load(self, entries, kwargs):
        values = {"name": "Mail"}
        values.update(kwargs)
        before = len(entries)
        with pytest.raises(TypeError):
            entries.add(**values)
        assert len(entries) == before

    def test_update_rejects_bad_types_without_mutating(self, entries):
        entry_id = entries.ids()[0]
        before = entries.get(entry_id).copy()
        with pytest.raises(TypeError):
            entries.update(entry_id, name="renamed", tags=["ok", 2])
        assert entries.get(entry_id) == before

    def test_removed_ids_are_never_reused(self, entries):
        entry_id = entries.ids()[0]
        removed = entries.remove(entry_id)
        assert entry_id in entries.retired_ids
        with pytest.raises(ValueError):
            entries.insert(removed)

    def test_unknown_id(self, entries):
        with pytest.raises(EntryNotFound) as exc_info:
            entries.get("missing")
        assert exc_info.value.entry_id == "missing"

    def test_find_ignores_secrets(self, entries):
        assert [e.name for e in entries.find("git")] == ["GitHub"]
        assert entries.find("hunter2") == []
        assert [e.name for e in entries.find("DEV")] == ["GitHub"]

    def test_wipe(self, entries):
        held = list(entries)
        entries.wipe()
        assert len(entries) == 0
        assert all(e.secret == "" for e in held)

    def test_copy_is_independent(self, entries):
        clone = entries.copy()
        entry_id = entries.ids()[0]
        clone.update(entry_id, name="changed")
        assert entries.get(entry_id).name != "changed"


class TestSerialization:
    def test_round_trip(self, entries):
        restored = deserialize_entries(serialize_entries(entries))
        assert restored.to_dict() == entries.to_dict()

    def test_canonical(self, entries):
        data = serialize_entries(entries)
        assert data == serialize_entries(deserialize_entries(data))
        payload = json.loads(data)
        assert payload["schema"] == 1
        assert b", " not in data

    def test_retired_ids_survive(self, entries):
        entry_id = entries.ids()[0]
        entries.remove(entry_id)
        restored = deserialize_entries(serialize_entries(entries))
        assert entry_id in restored.retired_ids

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"\xff\xfe",
            b"[]",
            b'{"schema": 99, "entries": []}',
            b'{"schema": 1, "entries": {}}',
            b'{"schema": 1, "entries": [{"name": "no id"}]}',
            b'{"schema": 1, "entries": [{"id": "a", "name": "x", "created_at": "bad", "updated_at": "bad"}]}',
        ],
    )
    def test_malformed_payload(self, data):
        with pytest.raises(VaultCorrupted):
            deserialize_entries(data)

    def test_naive_timestamp_rejected(self):
        naive = datetime(2024, 1, 1).isoformat()
        data = json.dumps(
            {"schema": 1, "entries": [{"id": "a", "name": "x", "created_at": naive, "updated_at": naive}]}
        ).encode()
        with pytest.raises(VaultCorrupted):
            deserialize_entries(data)

    def test_aware_timestamp_accepted(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat()
        data = json.dumps(
            {"schema": 1, "entries": [{"id": "a", "name": "x", "created_at": ts, "updated_at": ts}]}
        ).encode()
        assert deserialize_entries(data).get("a").name == "x"


class TestEncryption:
    def test_round_trip(self, entries, key):
        nonce = secrets.token_bytes(12)
        restored = decrypt(encrypt(entries, key, nonce), key, nonce)
        assert restored.to_dict() == entries.to_dict()

    def test_round_trip_with_aad(self, entries, key):
        nonce = secrets.token_bytes(12)
        ciphertext = encrypt(entries, key, nonce, aad=b"header")
        assert decrypt(ciphertext, key, nonce, aad=b"header").to_dict() == entries.to_dict()
        with pytest.raises(WrongMasterPasswordOrCorrupt):
            decrypt(ciphertext, key, nonce, aad=b"other")

    def test_wrong_key(self, entries, key):
        nonce = secrets.token_bytes(12)
        ciphertext = encrypt(entries, key, nonce)
        with pytest.raises(WrongMasterPasswordOrCorrupt):
            decrypt(ciphertext, secrets.token_bytes(32), nonce)

    def test_flipped_byte(self, entries, key):
        nonce = secrets.token_bytes(12)
        ciphertext = bytearray(encrypt(entries, key, nonce))
        ciphertext[len(ciphertext) // 2] ^= 0x01
        with pytest.raises(WrongMasterPasswordOrCorrupt):
            decrypt(bytes(ciphertext), key, nonce)

    def test_plaintext_not_in_ciphertext(self, entries, key):
        ciphertext = encrypt(entries, key, secrets.token_bytes(12))
        assert b"hunter2" not in ciphertext

    def test_nonce_length_enforced(self, entries, key):
        with pytest.raises(ValueError):
            encrypt(entries, key, b"short")


class TestIntegrityTag:
    def test_verify(self, key):
        tag = compute_integrity_tag(key, b"header", b"ciphertext")
        assert len(tag) == 32
        assert verify_integrity(tag, key, b"header", b"ciphertext") is True

    @pytest.mark.parametrize(
        "metadata, ciphertext",
        [(b"Header", b"ciphertext"), (b"header", b"ciphertexT")],
    )
    def test_mismatch(self, key, metadata, ciphertext):
        tag = compute_integrity_tag(key, b"header", b"ciphertext")
        with pytest.raises(IntegrityFailure):
            verify_integrity(tag, key, metadata, ciphertext)

    def test_wrong_key(self, key):
        tag = compute_integrity_tag(key, b"header", b"ciphertext")
        with pytest.raises(IntegrityFailure):
            verify_integrity(tag, secrets.token_bytes(32), b"header", b"ciphertext")
