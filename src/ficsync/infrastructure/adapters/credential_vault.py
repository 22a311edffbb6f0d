"""Authenticated symmetric encryption of token material at rest (NaCl SecretBox)."""

from __future__ import annotations

import base64
import binascii

import nacl.exceptions
import nacl.secret
import nacl.utils

from ...domain.errors import DecryptionError, VaultKeyUnavailableError


class SecretBoxVault:
    """
    Seals token bytes with XSalsa20-Poly1305.

    Blob layout: urlsafe-base64(nonce[24] || ciphertext || tag[16]). A fresh
    random nonce is drawn for every seal. The key is supplied by the caller
    and never appears in reprs, logs or error messages.
    """

    KEY_SIZE = nacl.secret.SecretBox.KEY_SIZE
    NONCE_SIZE = nacl.secret.SecretBox.NONCE_SIZE
    MAC_SIZE = nacl.secret.SecretBox.MACBYTES

    def __init__(self, key: bytes) -> None:
        if not isinstance(key, bytes) or len(key) != self.KEY_SIZE:
            raise VaultKeyUnavailableError(f"Vault key must be exactly {self.KEY_SIZE} bytes")
        self._box = nacl.secret.SecretBox(key)

    def __repr__(self) -> str:
        return "SecretBoxVault(key=<redacted>)"

    def seal(self, plaintext: bytes) -> str:
        nonce = nacl.utils.random(self.NONCE_SIZE)
        sealed = self._box.encrypt(plaintext, nonce)
        return base64.urlsafe_b64encode(bytes(sealed)).decode("ascii")

    def open(self, blob: str) -> bytes:
        try:
            raw = base64.urlsafe_b64decode(blob.encode("ascii"))
        except (binascii.Error, ValueError, UnicodeEncodeError, AttributeError):
            raise DecryptionError("Sealed blob is not valid base64") from None

        if len(raw) < self.NONCE_SIZE + self.MAC_SIZE:
            raise DecryptionError(f"Sealed blob is too short ({len(raw)} bytes)")

        try:
            return self._box.decrypt(raw)
        except nacl.exceptions.CryptoError:
            raise DecryptionError(
                "Sealed blob failed authentication",
                "The blob was tampered with or sealed under a different key",
            ) from None
