"""Incremental mailbox-history diffing against a persisted checkpoint."""

from __future__ import annotations

import logging

from ...domain.errors import CheckpointInvalidError
from ...domain.models.message import MessageRef, RawMessage
from ...domain.policy.retry_policy import RetryPolicy
from ...domain.types import Checkpoint
from ..ports.mailbox import MailboxPort
from .credential_session import CredentialSession
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


class HistoryTracker:
    """
    Computes the messages added since a checkpoint.

    The checkpoint is passed in and returned explicitly; persisting it is the
    orchestrator's job.
    """

    def __init__(
        self,
        mailbox: MailboxPort,
        credentials: CredentialSession,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.mailbox = mailbox
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicy()

    def diff(self, current_checkpoint: Checkpoint) -> tuple[list[MessageRef], Checkpoint]:
        """
        List new messages since `current_checkpoint`.

        On CheckpointInvalidError the checkpoint is treated as stale: the
        mailbox's latest checkpoint is fetched and an empty diff returned, so
        the whole mailbox history is never reprocessed.

        Args:
            current_checkpoint: Last mailbox state seen

        Returns:
            (messages ordered by arrival with duplicates collapsed, new checkpoint)

        Raises:
            TransientFetchError: Mailbox unreachable after retries
        """
        try:
            page = retry_with_backoff(
                lambda: self.mailbox.list_history_since(current_checkpoint, self.credentials.access_token()),
                self.retry_policy,
                description="mailbox history listing",
            )
        except CheckpointInvalidError as e:
            latest = self.latest()
            logger.warning(
                f"Checkpoint {current_checkpoint} rejected by mailbox, resyncing to {latest}: {e}",
                extra={"checkpoint": current_checkpoint.value, "resync_checkpoint": latest.value},
            )
            return [], latest

        messages = self._collapse(page.messages)
        new_checkpoint = page.checkpoint or current_checkpoint
        if current_checkpoint.is_after(new_checkpoint):
            # Never hand back a checkpoint older than the one we started from
            new_checkpoint = current_checkpoint

        logger.info(
            f"Mailbox diff since {current_checkpoint}: {len(messages)} new message(s)",
            extra={"checkpoint": current_checkpoint.value, "new_checkpoint": new_checkpoint.value},
        )
        return messages, new_checkpoint

    def latest(self) -> Checkpoint:
        """Fetch the mailbox's current checkpoint (bootstrap and resync)."""
        return retry_with_backoff(
            lambda: self.mailbox.latest_checkpoint(self.credentials.access_token()),
            self.retry_policy,
            description="mailbox latest checkpoint",
        )

    def fetch_message(self, ref: MessageRef) -> RawMessage:
        """
        Fetch the raw content of a message from the diff.

        Raises:
            TransientFetchError: Mailbox unreachable after retries
            MessageGoneError: Message deleted since it was listed (not retried)
        """
        return retry_with_backoff(
            lambda: self.mailbox.get_message(ref.message_id, self.credentials.access_token()),
            self.retry_policy,
            description=f"message {ref.message_id} retrieval",
        )

    @staticmethod
    def _collapse(messages: list[MessageRef]) -> list[MessageRef]:
        seen: set[str] = set()
        unique: list[MessageRef] = []
        # Stable sort keeps mailbox order for equal timestamps
        for ref in sorted(messages, key=lambda m: m.received_at):
            if ref.message_id in seen:
                continue
            seen.add(ref.message_id)
            unique.append(ref)
        return unique
