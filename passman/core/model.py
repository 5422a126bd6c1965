"""
Entry model.

An Entry is one credential record. Entries only ever live inside an
EntryCollection and are persisted as part of the whole vault.
"""

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Set

from passman.core.errors import EntryNotFound

ENTRY_ID_BYTES = 8
EDITABLE_FIELDS = ("name", "username", "secret", "notes", "url", "tags")
_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        raise ValueError(f"timestamp without timezone: {value!r}")
    return ts.astimezone(timezone.utc)


def _clean_fields(values: dict) -> dict:
    """
    Check field values before they reach an entry.

    Only values that Entry.from_dict accepts back may be stored. Optional
    text fields and tags treat None as empty; anything else of the wrong
    type raises TypeError.
    """
    cleaned = {}
    for name, value in values.items():
        if name == "tags":
            if value is None:
                value = []
            if isinstance(value, str) or not all(isinstance(t, str) for t in value):
                raise TypeError("entry tags must be a list of strings")
            cleaned[name] = list(value)
            continue
        if value is None and name != "name":
            value = ""
        if not isinstance(value, str):
            raise TypeError(f"entry field {name!r} must be a string")
        cleaned[name] = value
    return cleaned


@dataclass
class Entry:
    id: str
    name: str
    username: str = ""
    secret: str = field(default="", repr=False)
    notes: str = field(default="", repr=False)
    url: str = ""
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    def copy(self) -> "Entry":
        return replace(self, tags=list(self.tags))

    def matches(self, text: str) -> bool:
        """Case-insensitive match on name, username, url and tags. Never on secrets."""
        needle = text.lower()
        haystack = [self.name, self.username, self.url] + list(self.tags)
        return any(needle in value.lower() for value in haystack)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "secret": self.secret,
            "notes": self.notes,
            "url": self.url,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Entry":
        """Rebuild an entry. Raises ValueError, KeyError or TypeError on bad shape."""
        for name in ("id", "name", "username", "secret", "notes", "url"):
            if not isinstance(data.get(name, ""), str):
                raise TypeError(f"entry field {name!r} must be a string")
        tags = data.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise TypeError("entry tags must be a list of strings")
        return cls(
            id=data["id"],
            name=data["name"],
            username=data.get("username", ""),
            secret=data.get("secret", ""),
            notes=data.get("notes", ""),
            url=data.get("url", ""),
            tags=list(tags),
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
        )


class EntryCollection:
    """
    Mapping of entry id to Entry, plus the ids that have been retired.

    Ids are never reused: a new id must not collide with a live entry or
    with any id removed earlier.
    """

    def __init__(self, entries=None, retired_ids=None):
        self._entries: Dict[str, Entry] = {}
        self._retired: Set[str] = set(retired_ids or ())
        for entry in entries or ():
            self.insert(entry)

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries.values())

    def __contains__(self, entry_id):
        return entry_id in self._entries

    def __repr__(self):
        return f"EntryCollection(<{len(self._entries)} entries>)"

    @property
    def retired_ids(self) -> Set[str]:
        return set(self._retired)

    def ids(self) -> List[str]:
        return list(self._entries)

    def get(self, entry_id: str) -> Entry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFound(entry_id) from None

    def new_id(self) -> str:
        while True:
            candidate = secrets.token_hex(ENTRY_ID_BYTES)
            if candidate not in self._entries and candidate not in self._retired:
                return candidate

    def insert(self, entry: Entry) -> Entry:
        if entry.id in self._entries or entry.id in self._retired:
            raise ValueError(f"Entry id '{entry.id}' is already in use")
        self._entries[entry.id] = entry
        return entry

    def add(self, name: str, username: str = "", secret: str = "", notes: str = "",
            url: str = "", tags=None) -> Entry:
        fields = _clean_fields(
            {"name": name, "username": username, "secret": secret, "notes": notes, "url": url, "tags": tags}
        )
        now = utc_now()
        entry = Entry(id=self.new_id(), created_at=now, updated_at=now, **fields)
        return self.insert(entry)

    def update(self, entry_id: str, **changes) -> Entry:
        entry = self.get(entry_id)
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
        changes = _clean_fields(changes)
        for name, value in changes.items():
            setattr(entry, name, value)
        # Strictly increasing even if the wall clock has not moved
        now = utc_now()
        entry.updated_at = now if now > entry.updated_at else entry.updated_at + _TICK
        return entry

    def remove(self, entry_id: str) -> Entry:
        entry = self.get(entry_id)
        del self._entries[entry_id]
        self._retired.add(entry_id)
        return entry

    def restore(self, entry: Entry) -> None:
        """Put back an entry removed by remove(), used to roll back a failed save."""
        self._retired.discard(entry.id)
        self._entries[entry.id] = entry

    def replace_entry(self, entry: Entry) -> None:
        self.get(entry.id)
        self._entries[entry.id] = entry

    def discard_new(self, entry_id: str) -> None:
        """Forget an entry added by add() without retiring its id."""
        self._entries.pop(entry_id, None)

    def find(self, text: str) -> List[Entry]:
        return [entry for entry in self._entries.values() if entry.matches(text)]

    def copy(self) -> "EntryCollection":
        return EntryCollection(
            (entry.copy() for entry in self._entries.values()), self._retired
        )

    def to_dict(self) -> dict:
        return {
            "entries": [self._entries[k].to_dict() for k in sorted(self._entries)],
            "retired_ids": sorted(self._retired),
        }

    def wipe(self) -> None:
        """Drop every entry. Secret strings are replaced before release."""
        for entry in self._entries.values():
            entry.secret = ""
            entry.notes = ""
        self._entries.clear()
        self._retired.clear()
