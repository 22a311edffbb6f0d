"""Domain errors for the notification-driven sync pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """How the orchestrator reacts to a failure."""

    TRANSIENT = "transient"
    PERMANENT_ITEM = "permanent_item"
    PERMANENT_GLOBAL = "permanent_global"


class SyncError(Exception):
    """
    Base class for every typed pipeline failure.

    Attributes:
        message: Human readable description (never contains token or key material)
        hint: Actionable hint for resolution (optional)
    """

    kind: ErrorKind = ErrorKind.PERMANENT_ITEM

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        msg = message
        if hint:
            msg += f". {hint}"
        super().__init__(msg)

    @property
    def is_transient(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT


# Transient -----------------------------------------------------------------


class TransientFetchError(SyncError):
    """Raised when the mailbox API fails in a retryable way (network, timeout, 5xx)."""

    kind = ErrorKind.TRANSIENT


class SourceUnavailableError(SyncError):
    """
    Raised when a source site cannot be reached (network, timeout, 5xx).

    Attributes:
        source_kind: Source identifier (e.g. "fanfictionnet")
        story_id: Story identifier on the source
        index: Chapter index being fetched (optional)
    """

    kind = ErrorKind.TRANSIENT

    def __init__(self, source_kind: str, story_id: str, index: int | None = None, reason: str = "") -> None:
        self.source_kind = source_kind
        self.story_id = story_id
        self.index = index
        self.reason = reason
        target = f"{source_kind} story {story_id}"
        if index is not None:
            target += f" chapter {index}"
        super().__init__(f"Source unavailable for {target}: {reason}" if reason else f"Source unavailable for {target}")


class UploadTransportError(SyncError):
    """Raised when the remote document store cannot be reached (network, timeout, 5xx)."""

    kind = ErrorKind.TRANSIENT


# Permanent per item --------------------------------------------------------


class ContentBlockedError(SyncError):
    """
    Raised when a source actively rejects automated access.

    Attributes:
        source_kind: Source identifier
        story_id: Story identifier on the source
        index: Chapter index being fetched (optional)
    """

    kind = ErrorKind.PERMANENT_ITEM

    def __init__(self, source_kind: str, story_id: str, index: int | None = None, reason: str = "") -> None:
        self.source_kind = source_kind
        self.story_id = story_id
        self.index = index
        self.reason = reason
        target = f"{source_kind} story {story_id}"
        if index is not None:
            target += f" chapter {index}"
        super().__init__(f"Content blocked for {target}: {reason}" if reason else f"Content blocked for {target}")


class ChapterNotFoundError(SyncError):
    """
    Raised when a source reports the requested chapter does not exist.

    Attributes:
        source_kind: Source identifier
        story_id: Story identifier on the source
        index: Chapter index
    """

    kind = ErrorKind.PERMANENT_ITEM

    def __init__(self, source_kind: str, story_id: str, index: int) -> None:
        self.source_kind = source_kind
        self.story_id = story_id
        self.index = index
        super().__init__(f"Chapter {index} of {source_kind} story {story_id} not found")


class IncompleteStoryError(SyncError):
    """
    Raised when a story cannot be assembled from the chapters available.

    Attributes:
        story_key: Story key ("<source>/<story_id>")
        missing: Missing chapter indices
    """

    kind = ErrorKind.PERMANENT_ITEM

    def __init__(self, story_key: str, missing: tuple[int, ...] = (), reason: str | None = None) -> None:
        self.story_key = story_key
        self.missing = missing
        if reason is None:
            reason = f"missing chapters {', '.join(str(i) for i in missing)}"
        super().__init__(f"Story '{story_key}' is incomplete: {reason}")


class MessageGoneError(SyncError):
    """
    Raised when the mailbox no longer has a message listed in its history.

    Attributes:
        message_id: Mailbox message id
    """

    kind = ErrorKind.PERMANENT_ITEM

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message {message_id} is no longer available in the mailbox")


class RemoteQuotaExceededError(SyncError):
    """Raised when the remote document store refuses an upload for quota reasons."""

    kind = ErrorKind.PERMANENT_ITEM


class DecryptionError(SyncError):
    """Raised when a sealed blob is malformed or fails authentication."""

    kind = ErrorKind.PERMANENT_ITEM


class InvalidNotificationError(SyncError):
    """Raised when an inbound push notification cannot be decoded."""

    kind = ErrorKind.PERMANENT_ITEM


class UnsupportedSourceError(SyncError):
    """
    Raised when a request names a source with no registered implementation.

    Attributes:
        source_kind: Unknown source identifier
    """

    kind = ErrorKind.PERMANENT_ITEM

    def __init__(self, source_kind: str) -> None:
        self.source_kind = source_kind
        super().__init__(f"No source registered for '{source_kind}'")


# Permanent global ----------------------------------------------------------


class CheckpointInvalidError(SyncError):
    """
    Raised when the mailbox reports the stored checkpoint as expired or unknown.

    Attributes:
        checkpoint: The rejected checkpoint value
    """

    kind = ErrorKind.PERMANENT_GLOBAL

    def __init__(self, checkpoint: str, hint: str | None = None) -> None:
        self.checkpoint = checkpoint
        super().__init__(f"Mailbox checkpoint '{checkpoint}' is no longer valid", hint)


class VaultKeyUnavailableError(SyncError):
    """Raised when the vault key is missing or malformed."""

    kind = ErrorKind.PERMANENT_GLOBAL


class CredentialMissingError(SyncError):
    """Raised when no sealed credential is stored under the requested name."""

    kind = ErrorKind.PERMANENT_GLOBAL

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"No credential stored for '{name}'",
            "Complete the authorization flow to store a credential",
        )


class CredentialRevokedError(SyncError):
    """Raised when a refresh token is rejected by the authorization server."""

    kind = ErrorKind.PERMANENT_GLOBAL


class StateStoreError(SyncError):
    """Raised when persisted state cannot be read or written."""

    kind = ErrorKind.PERMANENT_GLOBAL


class CycleAbortedError(SyncError):
    """
    Raised when a notification cycle is aborted without advancing the checkpoint.

    Attributes:
        stage: Cycle stage at which the abort happened
        cause_kind: ErrorKind of the underlying failure
    """

    kind = ErrorKind.PERMANENT_GLOBAL

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause_kind = getattr(cause, "kind", ErrorKind.PERMANENT_GLOBAL)
        super().__init__(f"Cycle aborted during {stage}: {cause}")
