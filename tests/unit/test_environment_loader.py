"""Unit tests for environment loading and vault key decoding."""

import base64
import os

import pytest

from ficsync.domain.errors import VaultKeyUnavailableError
from ficsync.infrastructure.config.environment import (
    VAULT_KEY_ENV,
    get_env_bool,
    get_vault_key,
    load_environment_variables,
)

KEY = bytes(range(32))


def test_vault_key_standard_base64(monkeypatch):
    monkeypatch.setenv(VAULT_KEY_ENV, base64.b64encode(KEY).decode())
    assert get_vault_key() == KEY


def test_vault_key_urlsafe_base64_without_padding(monkeypatch):
    key = bytes([0xFB, 0xFF] * 16)
    monkeypatch.setenv(VAULT_KEY_ENV, base64.urlsafe_b64encode(key).decode().rstrip("="))
    assert get_vault_key() == key


def test_missing_vault_key(monkeypatch):
    monkeypatch.delenv(VAULT_KEY_ENV, raising=False)
    with pytest.raises(VaultKeyUnavailableError, match="not set"):
        get_vault_key()


def test_wrong_length_vault_key_is_not_echoed(monkeypatch):
    value = base64.b64encode(b"sixteen byte key").decode()
    monkeypatch.setenv(VAULT_KEY_ENV, value)
    with pytest.raises(VaultKeyUnavailableError) as exc_info:
        get_vault_key()
    assert "16 bytes" in str(exc_info.value)
    assert value not in str(exc_info.value)


def test_malformed_vault_key_is_not_echoed(monkeypatch):
    monkeypatch.setenv(VAULT_KEY_ENV, "***definitely-not-base64***")
    with pytest.raises(VaultKeyUnavailableError) as exc_info:
        get_vault_key()
    assert "definitely" not in str(exc_info.value)


@pytest.mark.parametrize(
    "value,expected",
    [("true", True), ("YES", True), ("1", True), ("off", False), ("0", False), ("maybe", None)],
)
def test_get_env_bool(monkeypatch, value, expected):
    monkeypatch.setenv("FICSYNC_TEST_FLAG", value)
    default = object()
    result = get_env_bool("FICSYNC_TEST_FLAG", default=default)
    assert result is (default if expected is None else expected)


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("FICSYNC_TEST_A=from-file\nFICSYNC_TEST_B=from-file\n")
    monkeypatch.setenv("FICSYNC_TEST_A", "from-env")
    monkeypatch.delenv("FICSYNC_TEST_B", raising=False)

    load_environment_variables(env_file)

    assert os.environ["FICSYNC_TEST_A"] == "from-env"
    assert os.environ["FICSYNC_TEST_B"] == "from-file"
    os.environ.pop("FICSYNC_TEST_B", None)
