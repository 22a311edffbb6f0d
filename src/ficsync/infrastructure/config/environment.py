"""Environment variable loading from .env files with precedence support."""

from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from ...domain.errors import VaultKeyUnavailableError

logger = logging.getLogger(__name__)

VAULT_KEY_ENV = "FICSYNC_VAULT_KEY"
VAULT_KEY_SIZE = 32

KNOWN_VARIABLES = {
    "FICSYNC_CONFIG": "Configuration file path (defaults to ficsync.toml)",
    "FICSYNC_STATE_DB": "SQLite state database path (overrides [state].path)",
    VAULT_KEY_ENV: "Base64-encoded 32-byte credential vault key (required)",
}


def load_environment_variables(dotenv_path: Path | str | None = None) -> None:
    """
    Load environment variables from a .env file.

    System environment takes precedence over .env values (override=False).

    Args:
        dotenv_path: Optional path to .env file. If None, the first .env found in
                     the current directory or up to 3 parent directories is used.
    """
    if dotenv_path is None:
        current = Path.cwd()
        search_paths = [current / ".env", *(parent / ".env" for parent in list(current.parents)[:3])]
        for path in search_paths:
            if path.exists():
                dotenv_path = path
                logger.debug(f"Loading .env file from: {path}")
                break

        if dotenv_path is None:
            load_dotenv(override=False)
            return

    dotenv_path = Path(dotenv_path)
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)
        logger.debug(f"Loaded .env file from: {dotenv_path}")
    else:
        logger.debug(f".env file not found at: {dotenv_path}")


def get_env(key: str, default: str | None = None) -> str | None:
    """
    Get environment variable value.

    Args:
        key: Environment variable name
        default: Default value if not found

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """
    Get boolean environment variable.

    Accepts: 'true', '1', 'yes', 'on' (case-insensitive) → True
            'false', '0', 'no', 'off' (case-insensitive) → False

    Args:
        key: Environment variable name
        default: Default value if unset or unrecognized

    Returns:
        Boolean value
    """
    value = os.getenv(key, "").lower().strip()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def get_vault_key(key: str = VAULT_KEY_ENV) -> bytes:
    """
    Read and decode the credential vault key.

    Accepts standard or URL-safe base64. The key value never appears in logs
    or error messages.

    Args:
        key: Environment variable holding the key

    Returns:
        32 raw key bytes

    Raises:
        VaultKeyUnavailableError: If the variable is unset or not a valid 32-byte key
    """
    value = get_env(key)
    if not value:
        raise VaultKeyUnavailableError(
            f"Vault key variable {key} is not set",
            f"Set {key} to a base64-encoded {VAULT_KEY_SIZE}-byte key in the environment or .env file",
        )

    value = value.strip()
    try:
        raw = base64.b64decode(value + "=" * (-len(value) % 4), altchars=b"-_" if ("-" in value or "_" in value) else None, validate=True)
    except (binascii.Error, ValueError):
        raise VaultKeyUnavailableError(f"Vault key in {key} is not valid base64") from None

    if len(raw) != VAULT_KEY_SIZE:
        raise VaultKeyUnavailableError(
            f"Vault key in {key} decodes to {len(raw)} bytes, expected {VAULT_KEY_SIZE}"
        )
    return raw


# Auto-load on import (common pattern for environment modules)
load_environment_variables()
