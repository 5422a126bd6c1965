import secrets
from dataclasses import dataclass
from typing import Optional

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from passman.constants import (
    AMBIGUOUS,
    ARGON2_MAX_MEMORY_COST,
    ARGON2_MAX_PARALLELISM,
    ARGON2_MAX_TIME_COST,
    ARGON2_MEMORY_COST,
    ARGON2_MIN_MEMORY_COST,
    ARGON2_MIN_PARALLELISM,
    ARGON2_MIN_TIME_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    DIGITS,
    ENCRYPTION_KEY_INFO,
    INTEGRITY_KEY_INFO,
    KEY_SIZE,
    LOWERCASE,
    MIN_PASSWORD_LENGTH,
    SALT_SIZE,
    SYMBOLS,
    UPPERCASE,
)
from passman.core.config import PasswordPolicy
from passman.core.errors import KdfParameterError, WeakPasswordError
from passman.core.memory_security import DerivedKeys, SecureBytes


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters. memory_cost is in KiB."""

    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM

    def __post_init__(self):
        for name in ("time_cost", "memory_cost", "parallelism"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise KdfParameterError(f"{name} must be an integer")

        if not ARGON2_MIN_TIME_COST <= self.time_cost <= ARGON2_MAX_TIME_COST:
            raise KdfParameterError(
                f"time_cost must be between {ARGON2_MIN_TIME_COST} and {ARGON2_MAX_TIME_COST}"
            )
        if not ARGON2_MIN_MEMORY_COST <= self.memory_cost <= ARGON2_MAX_MEMORY_COST:
            raise KdfParameterError(
                f"memory_cost must be between {ARGON2_MIN_MEMORY_COST} and {ARGON2_MAX_MEMORY_COST} KiB"
            )
        if not ARGON2_MIN_PARALLELISM <= self.parallelism <= ARGON2_MAX_PARALLELISM:
            raise KdfParameterError(
                f"parallelism must be between {ARGON2_MIN_PARALLELISM} and {ARGON2_MAX_PARALLELISM}"
            )
        if self.memory_cost < 8 * self.parallelism:
            raise KdfParameterError("memory_cost must be at least 8 * parallelism")


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_SIZE)


def _expand(base: bytes, info: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=info,
    ).derive(base)


def derive_keys(master_password: str, salt: bytes, params: Optional[KdfParams] = None) -> DerivedKeys:
    """
    Derive the encryption and integrity keys from the master password.

    Argon2id produces the base material, HKDF-SHA256 splits it into two
    domain-separated keys. A wrong password still derives keys; it is only
    detected when decryption fails.
    """
    params = params or KdfParams()
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise KdfParameterError(f"salt must be {SALT_SIZE} bytes")

    base = SecureBytes(
        hash_secret_raw(
            secret=master_password.encode("utf-8"),
            salt=bytes(salt),
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=KEY_SIZE,
            type=Type.ID,
        )
    )
    try:
        material = base.get()
        return DerivedKeys(
            encryption=_expand(material, ENCRYPTION_KEY_INFO),
            integrity=_expand(material, INTEGRITY_KEY_INFO),
        )
    finally:
        base.wipe()


def _character_classes(policy: PasswordPolicy) -> list:
    classes = []
    if policy.lowercase:
        classes.append(LOWERCASE)
    if policy.uppercase:
        classes.append(UPPERCASE)
    if policy.digits:
        classes.append(DIGITS)
    if policy.symbols:
        classes.append(SYMBOLS)

    if not classes:
        classes.append(LOWERCASE)

    if policy.exclude_ambiguous:
        classes = ["".join(c for c in chars if c not in AMBIGUOUS) for chars in classes]
    return classes


def generate_password(
    length: Optional[int] = None,
    policy: Optional[PasswordPolicy] = None,
    min_length: int = MIN_PASSWORD_LENGTH,
) -> str:
    """Generate a cryptographically secure random password"""
    policy = policy or PasswordPolicy()
    if length is None:
        length = max(policy.length, min_length)

    classes = _character_classes(policy)
    if length < min_length:
        raise WeakPasswordError(f"Password length must be at least {min_length}")
    if length < len(classes):
        raise WeakPasswordError(
            f"Password length must be at least {len(classes)} to include every character class"
        )

    # One from each enabled class, the rest from the union
    password = [secrets.choice(chars) for chars in classes]
    alphabet = "".join(classes)
    for _ in range(length - len(password)):
        password.append(secrets.choice(alphabet))

    secrets.SystemRandom().shuffle(password)
    return "".join(password)


def check_password_length(password: str, min_length: int = MIN_PASSWORD_LENGTH) -> None:
    if len(password) < min_length:
        raise WeakPasswordError(f"Master password must be at least {min_length} characters")
