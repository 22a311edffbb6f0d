"""Idempotent delivery of assembled documents to the remote store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ...domain.errors import SyncError
from ...domain.models.delivery import DeliveryOutcome, DeliveryRecord, DeliveryStatus
from ...domain.models.document import Document
from ...domain.policy.retry_policy import RetryPolicy
from ...domain.services.content_fingerprint import ContentFingerprintService
from ...domain.types import StoryRef
from ..ports.document_store import DocumentStorePort
from ..ports.state_store import StateStorePort
from .credential_session import CredentialSession
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

# Metadata keys attached to every upload, read back by reconcile()
META_STORY = "ficsync_story"
META_FINGERPRINT = "ficsync_fingerprint"


@dataclass
class ReconcileReport:
    """Changes made to the ledger by `DeliveryManager.reconcile`."""
    dropped: list[str] = field(default_factory=list)
    adopted: list[str] = field(default_factory=list)


class DeliveryManager:
    """
    Uploads documents, deduplicating against the delivery ledger.

    The ledger is written only after the store confirms the upload. A story
    has at most one remote document: a newer upload replaces the previous one.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        ledger: StateStorePort,
        credentials: CredentialSession,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicy()

    def deliver(self, document: Document) -> DeliveryOutcome:
        """
        Deliver `document` unless the remote copy is already current.

        Args:
            document: Assembled document with package bytes

        Returns:
            DeliveryOutcome (uploaded, replaced or already_current)

        Raises:
            UploadTransportError: Store unreachable after retries
            RemoteQuotaExceededError: Store refused the upload
        """
        story = document.story
        fingerprint = ContentFingerprintService.compute(document)
        existing = self.ledger.get_delivery(story)

        if existing is not None and ContentFingerprintService.is_unchanged(existing, fingerprint):
            logger.info(
                f"{story.key} already current (fingerprint {fingerprint[:12]})",
                extra={"story": story.key, "stage": "delivering"},
            )
            return DeliveryOutcome(status=DeliveryStatus.ALREADY_CURRENT, record=existing)

        metadata = {
            "visible_name": document.title,
            "file_name": document.filename,
            "file_type": "epub",
            "media_type": document.media_type,
            META_STORY: story.key,
            META_FINGERPRINT: fingerprint,
        }
        remote_id = retry_with_backoff(
            lambda: self.store.upload(document.package, metadata, self.credentials.access_token()),
            self.retry_policy,
            description=f"{story.key} upload",
        )

        record = DeliveryRecord(
            story=story,
            content_fingerprint=fingerprint,
            remote_document_id=remote_id,
            delivered_at=datetime.now(timezone.utc),
        )
        # Upload is confirmed at this point; only now may the ledger move
        self.ledger.upsert_delivery(record)

        replaced: str | None = None
        if existing is not None and existing.remote_document_id != remote_id:
            replaced = existing.remote_document_id
            self._delete_quietly(story, replaced)

        status = DeliveryStatus.REPLACED if replaced else DeliveryStatus.UPLOADED
        logger.info(
            f"Delivered {story.key} as {remote_id} ({status.value})",
            extra={"story": story.key, "stage": "delivering", "remote_id": remote_id},
        )
        return DeliveryOutcome(status=status, record=record, replaced_remote_id=replaced)

    def reconcile(self) -> ReconcileReport:
        """
        Align the ledger with what the remote store actually holds.

        - Ledger records whose remote document is gone are dropped, so the
          next cycle uploads the story again.
        - Remote documents carrying ficsync story metadata but no ledger
          record are adopted.

        Raises:
            UploadTransportError: Store unreachable after retries
        """
        remote = retry_with_backoff(
            lambda: self.store.list(self.credentials.access_token()),
            self.retry_policy,
            description="remote document listing",
        )
        remote_ids = {doc.remote_id for doc in remote}
        report = ReconcileReport()

        for record in self.ledger.list_deliveries():
            if record.remote_document_id not in remote_ids:
                self.ledger.delete_delivery(record.story)
                report.dropped.append(record.story.key)

        for doc in remote:
            key = doc.metadata.get(META_STORY)
            fingerprint = doc.metadata.get(META_FINGERPRINT)
            if not key or not fingerprint:
                continue
            try:
                story = StoryRef.from_key(key)
            except ValueError:
                logger.warning(f"Ignoring remote document {doc.remote_id} with invalid story key {key!r}")
                continue
            if self.ledger.get_delivery(story) is None:
                self.ledger.upsert_delivery(
                    DeliveryRecord(story=story, content_fingerprint=fingerprint, remote_document_id=doc.remote_id)
                )
                report.adopted.append(story.key)

        logger.info(
            f"Reconciled ledger: {len(report.dropped)} dropped, {len(report.adopted)} adopted",
            extra={"dropped": report.dropped, "adopted": report.adopted},
        )
        return report

    def _delete_quietly(self, story: StoryRef, remote_id: str) -> None:
        try:
            retry_with_backoff(
                lambda: self.store.delete(remote_id, self.credentials.access_token()),
                self.retry_policy,
                description=f"{story.key} previous copy deletion",
            )
        except SyncError as e:
            # The new copy is live and recorded; the orphan is cleaned up by reconcile()
            logger.warning(
                f"Could not delete previous remote copy {remote_id} of {story.key}: {e}",
                extra={"story": story.key, "stage": "delivering", "error_kind": e.kind.value},
            )
