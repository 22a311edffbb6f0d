"""Domain model for OAuth credentials held by the vault."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class CredentialState(str, Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Credential:
    """
    Access/refresh token pair.

    Only ever persisted sealed; the cleartext form lives in memory for the
    duration of an external call. Token values are excluded from repr.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_at: datetime

    def state(self, now: datetime | None = None, skew: timedelta = timedelta(minutes=5)) -> CredentialState:
        now = now or datetime.now(timezone.utc)
        if now >= self.expires_at:
            return CredentialState.EXPIRED
        if now + skew >= self.expires_at:
            return CredentialState.EXPIRING_SOON
        return CredentialState.VALID

    def to_bytes(self) -> bytes:
        """Serialize for sealing."""
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
        }
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> Credential:
        data = json.loads(raw.decode("utf-8"))
        expires_at = datetime.fromisoformat(data["expires_at"])
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=expires_at,
        )
