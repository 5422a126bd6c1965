"""Unit tests for key derivation and the password generator."""

import pytest

from passman.constants import AMBIGUOUS, DIGITS, LOWERCASE, SYMBOLS, UPPERCASE
from passman.core.config import PasswordPolicy
from passman.core.crypto import (
    KdfParams,
    check_password_length,
    derive_keys,
    generate_password,
    generate_salt,
)
from passman.core.errors import KdfParameterError, WeakPasswordError

from conftest import FAST_PARAMS


class TestKdfParams:
    def test_defaults(self):
        params = KdfParams()
        assert (params.time_cost, params.memory_cost, params.parallelism) == (3, 65536, 4)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"time_cost": 0},
            {"memory_cost": 4096},
            {"parallelism": 0},
            {"time_cost": 65},
            {"parallelism": 65},
            {"memory_cost": 4 * 1024 * 1024 + 1},
            {"time_cost": "3"},
            {"time_cost": True},
        ],
    )
    def test_rejects_out_of_range(self, kwargs):
        with pytest.raises(KdfParameterError):
            KdfParams(**kwargs)

    def test_kdf_parameter_error_is_value_error(self):
        with pytest.raises(ValueError):
            KdfParams(time_cost=0)


class TestDeriveKeys:
    def test_deterministic(self):
        salt = generate_salt()
        a = derive_keys("master password!", salt, FAST_PARAMS)
        b = derive_keys("master password!", salt, FAST_PARAMS)
        assert a.encryption == b.encryption
        assert a.integrity == b.integrity

    def test_subkeys_are_domain_separated(self):
        keys = derive_keys("master password!", generate_salt(), FAST_PARAMS)
        assert len(keys.encryption) == 32
        assert len(keys.integrity) == 32
        assert keys.encryption != keys.integrity

    def test_different_salt_gives_different_keys(self):
        a = derive_keys("master password!", generate_salt(), FAST_PARAMS)
        b = derive_keys("master password!", generate_salt(), FAST_PARAMS)
        assert a.encryption != b.encryption

    def test_wrong_password_still_derives(self):
        salt = generate_salt()
        right = derive_keys("master password!", salt, FAST_PARAMS)
        wrong = derive_keys("master passw0rd!", salt, FAST_PARAMS)
        assert right.encryption != wrong.encryption

    def test_bad_salt_length(self):
        with pytest.raises(KdfParameterError):
            derive_keys("master password!", b"short", FAST_PARAMS)

    def test_wiped_keys_cannot_be_used(self):
        keys = derive_keys("master password!", generate_salt(), FAST_PARAMS)
        keys.wipe()
        assert keys.is_wiped
        with pytest.raises(ValueError):
            keys.encryption

    def test_repr_hides_key_material(self):
        keys = derive_keys("master password!", generate_salt(), FAST_PARAMS)
        assert keys.encryption.hex() not in repr(keys)


class TestGeneratePassword:
    def test_default_length_and_classes(self):
        password = generate_password()
        assert len(password) == 20
        assert any(c in LOWERCASE for c in password)
        assert any(c in UPPERCASE for c in password)
        assert any(c in DIGITS for c in password)
        assert any(c in SYMBOLS for c in password)

    def test_explicit_length(self):
        assert len(generate_password(32)) == 32

    def test_refuses_below_floor(self):
        with pytest.raises(WeakPasswordError):
            generate_password(8, min_length=12)

    def test_floor_is_configurable(self):
        assert len(generate_password(8, min_length=8)) == 8

    def test_policy_classes(self):
        policy = PasswordPolicy(length=24, uppercase=False, symbols=False)
        password = generate_password(policy=policy)
        assert len(password) == 24
        assert all(c in LOWERCASE + DIGITS for c in password)

    def test_exclude_ambiguous(self):
        policy = PasswordPolicy(length=64, exclude_ambiguous=True)
        for _ in range(20):
            assert not set(generate_password(policy=policy)) & set(AMBIGUOUS)

    def test_policy_length_below_floor_is_raised_to_floor(self):
        policy = PasswordPolicy(length=6)
        assert len(generate_password(policy=policy, min_length=12)) == 12

    def test_passwords_differ(self):
        assert generate_password() != generate_password()


def test_check_password_length():
    check_password_length("a" * 12, 12)
    with pytest.raises(WeakPasswordError):
        check_password_length("a" * 11, 12)
