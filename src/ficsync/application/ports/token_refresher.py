"""Port for exchanging refresh tokens for new access tokens."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class TokenGrant:
    """
    Tokens returned by a refresh.
    
    Attributes:
        access_token: New access token
        expires_in: Lifetime in seconds
        refresh_token: Rotated refresh token (None if the server keeps the old one)
    """
    access_token: str = field(repr=False)
    expires_in: int
    refresh_token: str | None = field(default=None, repr=False)


@runtime_checkable
class TokenRefresherPort(Protocol):
    def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.
        
        Raises:
            TransientFetchError: Authorization server unreachable (retryable)
            CredentialRevokedError: Refresh token rejected (non-retryable)
        """
        ...
