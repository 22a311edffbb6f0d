"""Domain models for the sync pipeline."""

from .chapter import Chapter
from .credential import Credential, CredentialState
from .cycle import CycleReport, CycleState, CycleStatistics, PendingRetry, StoryOutcome
from .delivery import DeliveryOutcome, DeliveryRecord, DeliveryStatus, RemoteDocument
from .document import Document
from .extraction import ChapterSelector, ExtractionRequest
from .message import MessageRef, RawMessage

__all__ = [
    "Chapter",
    "ChapterSelector",
    "Credential",
    "CredentialState",
    "CycleReport",
    "CycleState",
    "CycleStatistics",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryStatus",
    "Document",
    "ExtractionRequest",
    "MessageRef",
    "PendingRetry",
    "RawMessage",
    "RemoteDocument",
    "StoryOutcome",
]
