"""Port for the mailbox API (history listing and message retrieval)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ...domain.models.message import MessageRef, RawMessage
from ...domain.types import Checkpoint


@dataclass
class HistoryPage:
    """
    Messages added since a checkpoint.
    
    Attributes:
        messages: Added messages as reported by the mailbox (may contain duplicates, any order)
        checkpoint: Mailbox state after these messages
    """
    messages: list[MessageRef] = field(default_factory=list)
    checkpoint: Checkpoint | None = None


@runtime_checkable
class MailboxPort(Protocol):
    def list_history_since(self, checkpoint: Checkpoint, access_token: str) -> HistoryPage:
        """
        List messages added to the mailbox after `checkpoint`.
        
        Args:
            checkpoint: Last mailbox state seen
            access_token: OAuth access token for the mailbox
        
        Returns:
            HistoryPage with the added messages and the new checkpoint
        
        Raises:
            TransientFetchError: On network/API failure (retryable)
            CheckpointInvalidError: If the mailbox no longer knows `checkpoint`
        """
        ...
    
    def get_message(self, message_id: str, access_token: str) -> RawMessage:
        """
        Fetch and decode one message.
        
        Raises:
            TransientFetchError: On network/API failure (retryable)
            MessageGoneError: If the message was deleted after being listed
        """
        ...
    
    def latest_checkpoint(self, access_token: str) -> Checkpoint:
        """
        Return the mailbox's current state marker (used to resync).
        
        Raises:
            TransientFetchError: On network/API failure (retryable)
        """
        ...
