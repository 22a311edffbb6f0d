from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...domain.errors import InvalidNotificationError


class NotificationEvent(BaseModel):
    """Inbound push notification: a trigger to re-diff the mailbox, never a content source."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    email_address: str = Field(default="", alias="emailAddress")
    history_id: str = Field(alias="historyId")
    message_id: str | None = None  # push delivery id, used to drop redeliveries

    @classmethod
    def from_pubsub_envelope(cls, body: dict[str, Any] | bytes | str) -> NotificationEvent:
        """
        Decode a push envelope `{"message": {"data": <base64 JSON>, "messageId": ...}}`.

        Raises:
            InvalidNotificationError: Envelope, payload or historyId malformed
        """
        try:
            if isinstance(body, (bytes, str)):
                body = json.loads(body)
            message = body["message"]
            payload = json.loads(base64.b64decode(message["data"], validate=False))
            history_id = payload["historyId"]
            return cls(
                emailAddress=payload.get("emailAddress", ""),
                historyId=str(history_id),
                message_id=message.get("messageId") or message.get("message_id"),
            )
        except (KeyError, TypeError, AttributeError, binascii.Error, UnicodeDecodeError, ValueError, ValidationError) as e:
            raise InvalidNotificationError(
                f"Malformed push notification: {type(e).__name__}",
                "Expected a push envelope whose base64 data carries emailAddress and historyId",
            ) from e
