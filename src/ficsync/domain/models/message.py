"""Domain models for mailbox messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class MessageRef:
    """
    A message observed in the mailbox history.

    Attributes:
        message_id: Mailbox message identifier
        received_at: Arrival time (used to order a diff)
    """

    message_id: str
    received_at: datetime

    def __post_init__(self) -> None:
        if not self.message_id:
            raise ValueError("message_id must be non-empty")


@dataclass(frozen=True)
class RawMessage:
    """
    Decoded content of a mailbox message.

    Attributes:
        message_id: Mailbox message identifier
        sender: Value of the From header
        subject: Value of the Subject header
        text_body: Decoded text/plain body (empty if absent)
        html_body: Decoded text/html body (empty if absent)
        headers: All headers, last value wins
    """

    message_id: str
    sender: str = ""
    subject: str = ""
    text_body: str = ""
    html_body: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def body(self) -> str:
        """Preferred body for pattern matching (text first, then HTML)."""
        return self.text_body or self.html_body
