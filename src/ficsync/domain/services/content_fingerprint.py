"""Domain service for document fingerprint computation and comparison."""

from __future__ import annotations

import hashlib

from ..models.delivery import DeliveryRecord
from ..models.document import Document

# Bump when the canonical form below changes, to force re-delivery
FINGERPRINT_VERSION = "1"


class ContentFingerprintService:
    """
    Domain service for computing and comparing document fingerprints.

    This service is pure (no I/O) and deterministic.
    """

    @staticmethod
    def compute(document: Document) -> str:
        """
        Compute the content fingerprint of an assembled document.

        Fingerprint covers the canonical story content:
        - Source kind, story id, title and author
        - Each chapter's index, title and normalized body, in index order
        - Indices flagged as missing

        Timestamps (fetch time, build time) are excluded so that re-fetching
        unchanged chapters yields the same fingerprint.

        Args:
            document: Assembled document

        Returns:
            SHA256 hex digest
        """
        hash_obj = hashlib.sha256()

        def feed(value: str) -> None:
            encoded = value.encode("utf-8")
            # Length prefix keeps field boundaries unambiguous
            hash_obj.update(str(len(encoded)).encode("ascii"))
            hash_obj.update(b":")
            hash_obj.update(encoded)

        feed(FINGERPRINT_VERSION)
        feed(document.story.source_kind)
        feed(document.story.story_id)
        feed(document.title)
        feed(document.author)
        for chapter in document.chapters:
            feed(str(chapter.index))
            feed(chapter.title)
            feed(chapter.body)
        feed(",".join(str(i) for i in document.missing))
        return hash_obj.hexdigest()

    @staticmethod
    def is_unchanged(stored: DeliveryRecord | None, fingerprint: str) -> bool:
        """
        Check whether the remote copy is already current.

        Args:
            stored: Ledger record for the story (None if never delivered)
            fingerprint: Fingerprint of the freshly assembled document

        Returns:
            True if the stored fingerprint matches
        """
        if stored is None:
            return False
        return stored.content_fingerprint == fingerprint
