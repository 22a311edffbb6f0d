"""Credential lifecycle: open, check expiry, refresh explicitly, re-seal."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from ...domain.errors import CredentialMissingError, DecryptionError
from ...domain.models.credential import Credential, CredentialState
from ...domain.policy.retry_policy import RetryPolicy
from ..ports.credential_vault import CredentialVaultPort
from ..ports.state_store import StateStorePort
from ..ports.token_refresher import TokenRefresherPort
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


class CredentialSession:
    """
    Hands out valid access tokens for one named credential.

    The credential is kept sealed in the state store. Before each external
    call the cleartext is opened, its state checked (valid / expiring soon /
    expired) and, when needed, refreshed as an explicit step; the refreshed
    credential is sealed and persisted before the token is returned.
    """

    def __init__(
        self,
        name: str,
        vault: CredentialVaultPort,
        store: StateStorePort,
        refresher: TokenRefresherPort,
        refresh_skew: timedelta = timedelta(minutes=5),
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.name = name
        self.vault = vault
        self.store = store
        self.refresher = refresher
        self.refresh_skew = refresh_skew
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def save(self, credential: Credential) -> None:
        """Seal and persist `credential` (used by the authorization flow and after refresh)."""
        self.store.put_sealed_credential(self.name, self.vault.seal(credential.to_bytes()))

    def load(self) -> Credential:
        """
        Open the stored credential.

        Raises:
            CredentialMissingError: Nothing stored under this name
            DecryptionError: Blob tampered with or sealed under another key
        """
        blob = self.store.get_sealed_credential(self.name)
        if blob is None:
            raise CredentialMissingError(self.name)
        raw = self.vault.open(blob)
        try:
            return Credential.from_bytes(raw)
        except (ValueError, KeyError) as e:
            raise DecryptionError(f"Credential '{self.name}' does not decode to a token") from e

    def state(self) -> CredentialState:
        return self.load().state(now=self._clock(), skew=self.refresh_skew)

    def refresh(self, credential: Credential | None = None) -> Credential:
        """
        Exchange the refresh token for a new access token and persist the result.

        Raises:
            TransientFetchError: Authorization server unreachable after retries
            CredentialRevokedError: Refresh token rejected
        """
        credential = credential or self.load()
        grant = retry_with_backoff(
            lambda: self.refresher.refresh(credential.refresh_token),
            self.retry_policy,
            description=f"token refresh for '{self.name}'",
        )
        refreshed = Credential(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or credential.refresh_token,
            expires_at=self._clock() + timedelta(seconds=grant.expires_in),
        )
        self.save(refreshed)
        logger.info(
            f"Refreshed credential '{self.name}'",
            extra={"credential": self.name, "expires_at": refreshed.expires_at.isoformat()},
        )
        return refreshed

    def access_token(self) -> str:
        """Return an access token that is valid beyond the refresh skew."""
        credential = self.load()
        state = credential.state(now=self._clock(), skew=self.refresh_skew)
        if state is not CredentialState.VALID:
            logger.debug(f"Credential '{self.name}' is {state.value}, refreshing")
            credential = self.refresh(credential)
        return credential.access_token
