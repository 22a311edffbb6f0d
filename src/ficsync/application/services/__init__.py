"""Application services for orchestrating domain logic."""

from .content_extractor import ContentExtractor, StoryFetch, merge_requests
from .credential_session import CredentialSession
from .delivery_manager import DeliveryManager, ReconcileReport
from .document_assembler import DocumentAssembler
from .history_tracker import HistoryTracker
from .retry import retry_with_backoff

__all__ = [
    "ContentExtractor",
    "CredentialSession",
    "DeliveryManager",
    "DocumentAssembler",
    "HistoryTracker",
    "ReconcileReport",
    "StoryFetch",
    "merge_requests",
    "retry_with_backoff",
]
