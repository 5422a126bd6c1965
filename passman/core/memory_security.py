"""
Memory Security Module for passman
Scoped ownership of key material that can be wiped on demand
"""

from typing import Optional


def wipe_bytearray(buf: Optional[bytearray]) -> None:
    """Overwrite a mutable buffer with zeros in place"""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0


class SecureBytes:
    """
    A mutable byte buffer that can be securely wiped.
    Used for derived keys so they can be zeroed on lock.
    """

    def __init__(self, data: bytes = b""):
        self._buffer = bytearray(data)
        self._is_valid = True

    def get(self) -> bytes:
        """Get the current value as bytes"""
        if not self._is_valid:
            raise ValueError("SecureBytes has been wiped")
        return bytes(self._buffer)

    def wipe(self):
        """Overwrite the buffer with zeros and drop it"""
        wipe_bytearray(self._buffer)
        self._buffer = bytearray()
        self._is_valid = False

    @property
    def is_wiped(self) -> bool:
        return not self._is_valid

    def __del__(self):
        self.wipe()

    def __len__(self):
        return len(self._buffer) if self._is_valid else 0

    def __bool__(self):
        return self._is_valid and len(self._buffer) > 0

    def __repr__(self):
        state = "wiped" if not self._is_valid else f"{len(self._buffer)} bytes"
        return f"SecureBytes(<{state}>)"


class DerivedKeys:
    """
    The encryption and integrity sub-keys derived from one master password.

    Owned by exactly one holder at a time. wipe() zeroes both keys; using
    them afterwards raises ValueError.
    """

    def __init__(self, encryption: bytes, integrity: bytes):
        self._encryption = SecureBytes(encryption)
        self._integrity = SecureBytes(integrity)

    @property
    def encryption(self) -> bytes:
        return self._encryption.get()

    @property
    def integrity(self) -> bytes:
        return self._integrity.get()

    @property
    def is_wiped(self) -> bool:
        return self._encryption.is_wiped and self._integrity.is_wiped

    def wipe(self):
        self._encryption.wipe()
        self._integrity.wipe()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.wipe()
        return False

    def __repr__(self):
        return "DerivedKeys(<redacted>)"
