"""Unit tests for SecretBoxVault."""

import base64

import pytest

from ficsync.domain.errors import DecryptionError, VaultKeyUnavailableError
from ficsync.infrastructure.adapters.credential_vault import SecretBoxVault

from fakes import TEST_KEY


def test_seal_and_open(vault):
    blob = vault.seal(b"refresh-token-value")
    assert b"refresh-token-value" not in base64.urlsafe_b64decode(blob)
    assert vault.open(blob) == b"refresh-token-value"


def test_every_seal_uses_a_fresh_nonce(vault):
    assert vault.seal(b"same") != vault.seal(b"same")


def test_tampered_blob_is_rejected(vault):
    raw = bytearray(base64.urlsafe_b64decode(vault.seal(b"secret")))
    raw[-1] ^= 0x01
    with pytest.raises(DecryptionError, match="failed authentication"):
        vault.open(base64.urlsafe_b64encode(bytes(raw)).decode("ascii"))


def test_blob_from_another_key_is_rejected(vault):
    other = SecretBoxVault(bytes(32))
    with pytest.raises(DecryptionError):
        vault.open(other.seal(b"secret"))


def test_short_blob_is_rejected(vault):
    with pytest.raises(DecryptionError, match="too short"):
        vault.open(base64.urlsafe_b64encode(b"x" * 10).decode("ascii"))


def test_non_base64_blob_is_rejected(vault):
    with pytest.raises(DecryptionError, match="not valid base64"):
        vault.open("not base64 at all!")


@pytest.mark.parametrize("key", [b"", b"short", bytes(33)])
def test_key_must_be_32_bytes(key):
    with pytest.raises(VaultKeyUnavailableError):
        SecretBoxVault(key)


def test_repr_never_shows_key():
    text = repr(SecretBoxVault(TEST_KEY))
    assert "redacted" in text
    assert TEST_KEY.hex() not in text
    assert base64.b64encode(TEST_KEY).decode() not in text
