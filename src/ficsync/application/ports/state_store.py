"""Port interface for persisted pipeline state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Sequence

    from ...domain.models.chapter import Chapter
    from ...domain.models.cycle import PendingRetry
    from ...domain.models.delivery import DeliveryRecord
    from ...domain.types import Checkpoint, StoryRef


class StateStorePort(ABC):
    """
    Port for the checkpoint, the delivery ledger, stored chapters, pending retries
    and sealed credentials.

    Every write is an atomic upsert; every read is a point lookup by key.
    Callers serialize access through the pipeline lock.
    """

    @abstractmethod
    def get_checkpoint(self) -> Checkpoint | None:
        """
        Return the stored mailbox checkpoint.

        Returns:
            Checkpoint, or None before the first cycle

        Raises:
            StateStoreError: If the store cannot be read
        """
        pass

    @abstractmethod
    def advance_checkpoint(self, checkpoint: Checkpoint) -> bool:
        """
        Store `checkpoint` if it is more advanced than the stored one.

        Args:
            checkpoint: Candidate checkpoint

        Returns:
            True if stored, False if the stored checkpoint is already as advanced

        Raises:
            StateStoreError: If the store cannot be written
        """
        pass

    @abstractmethod
    def reset_checkpoint(self, checkpoint: Checkpoint | None) -> None:
        """
        Operator reset: overwrite the checkpoint unconditionally (None clears it).

        Raises:
            StateStoreError: If the store cannot be written
        """
        pass

    @abstractmethod
    def get_delivery(self, story: StoryRef) -> DeliveryRecord | None:
        """Return the ledger record for `story`, or None."""
        pass

    @abstractmethod
    def upsert_delivery(self, record: DeliveryRecord) -> None:
        """Insert or replace the ledger record for `record.story`."""
        pass

    @abstractmethod
    def delete_delivery(self, story: StoryRef) -> None:
        """Remove the ledger record for `story` (no-op if absent)."""
        pass

    @abstractmethod
    def list_deliveries(self) -> list[DeliveryRecord]:
        """Return every ledger record ordered by story key."""
        pass

    @abstractmethod
    def upsert_chapters(self, story: StoryRef, chapters: Sequence[Chapter]) -> None:
        """
        Insert or replace `chapters` of `story`, keyed by chapter index.

        A chapter fetched again (republished) replaces the stored copy.

        Raises:
            StateStoreError: If the store cannot be written
        """
        pass

    @abstractmethod
    def list_chapters(self, story: StoryRef) -> list[Chapter]:
        """Return every stored chapter of `story` ordered by index."""
        pass

    @abstractmethod
    def get_pending_retry(self, story: StoryRef) -> PendingRetry | None:
        """Return the pending-retry marker for `story`, or None."""
        pass

    @abstractmethod
    def upsert_pending_retry(self, pending: PendingRetry) -> None:
        """Insert or replace the pending-retry marker for `pending.story`."""
        pass

    @abstractmethod
    def clear_pending_retry(self, story: StoryRef) -> None:
        """Remove the pending-retry marker for `story` (no-op if absent)."""
        pass

    @abstractmethod
    def list_pending_retries(self) -> list[PendingRetry]:
        """Return every pending-retry marker ordered by story key."""
        pass

    @abstractmethod
    def get_sealed_credential(self, name: str) -> str | None:
        """Return the sealed credential blob stored under `name`, or None."""
        pass

    @abstractmethod
    def put_sealed_credential(self, name: str, blob: str) -> None:
        """Insert or replace the sealed credential blob stored under `name`."""
        pass
