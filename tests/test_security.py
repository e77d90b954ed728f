import pytest

from app.core.errors import PasswordHashError
from app.core.security import ALPHANUMERIC, hash_password, random_string, verify_password


def test_hash_and_verify_roundtrip():
    hashed = hash_password("correct horse battery", rounds=4)

    assert hashed != "correct horse battery"
    assert hashed.startswith("$2b$04$")
    assert verify_password("correct horse battery", hashed)
    assert not verify_password("correct horse battery!", hashed)


def test_same_password_hashes_differently():
    assert hash_password("secret-pass", rounds=4) != hash_password("secret-pass", rounds=4)


def test_password_over_72_bytes_is_rejected():
    with pytest.raises(PasswordHashError):
        hash_password("a" * 73, rounds=4)


def test_multibyte_password_counts_bytes_not_chars():
    # 37 chars, 74 bytes
    with pytest.raises(PasswordHashError):
        hash_password("é" * 37, rounds=4)


@pytest.mark.parametrize("rounds", [3, 32])
def test_out_of_range_cost_is_rejected(rounds):
    with pytest.raises(PasswordHashError):
        hash_password("secret-pass", rounds=rounds)


def test_verify_rejects_input_longer_than_stored_limit():
    stored = hash_password("X" * 72, rounds=4)

    assert verify_password("X" * 72, stored)
    assert verify_password("X" * 72 + "extra-suffix", stored) is False


def test_verify_against_garbage_hash_is_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_random_string_uses_alphabet():
    value = random_string(60)
    assert len(value) == 60
    assert set(value) <= set(ALPHANUMERIC)
    assert random_string(60) != value
