"""Chat notification value type.

Learn: A notification is a pointer, not a copy of the message. It tells
the client "thread X has a new message Y from Z"; the client then pulls
the message body through the regular chat API. That keeps the live push
tiny and means a dropped push never loses data.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Union

MESSAGE_EVENT = "message"

Identifier = Union[uuid.UUID, str]


@dataclass(frozen=True)
class ChatNotification:
    """Immutable "new message" event for one chat thread."""

    thread_id: Identifier
    message_id: Identifier
    sender_id: str
    event: str = MESSAGE_EVENT

    def to_payload(self) -> dict[str, Any]:
        """Wire payload with camelCase keys, as the web client expects."""
        return {
            "threadId": str(self.thread_id),
            "messageId": str(self.message_id),
            "senderId": self.sender_id,
            "event": self.event,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), separators=(",", ":"))
