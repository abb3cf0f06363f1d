"""Message model type definitions for the in-memory conversation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TypedDict


class MessageRole(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageLifecycle(str, Enum):
    """Lifecycle of a message.

    - PENDING: assistant placeholder, answer not known yet
    - REVEALING: content growing tick by tick
    - SETTLED: final
    - STOPPED: cancelled by the user, content frozen at the last revealed prefix
    - ERRORED: content replaced by a terminal error notice
    """

    PENDING = "pending"
    REVEALING = "revealing"
    SETTLED = "settled"
    STOPPED = "stopped"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MessageLifecycle.SETTLED,
            MessageLifecycle.STOPPED,
            MessageLifecycle.ERRORED,
        )

    @property
    def is_active(self) -> bool:
        return self in (MessageLifecycle.PENDING, MessageLifecycle.REVEALING)


class Source(TypedDict):
    """Grounding source reported alongside an answer."""

    uri: str
    title: str


@dataclass(frozen=True)
class Attachment:
    """File or image uploaded with a user message.

    ``data`` is the base64-encoded file body, as received from the client.
    """

    filename: str
    mime_type: str
    data: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_data_uri(self) -> str:
        """Encode the attachment as a ``data:`` URI."""
        return f"data:{self.mime_type};base64,{self.data}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """One turn in the visible conversation.

    Only the active assistant message is mutated in place; everything
    else is append-only.
    """

    id: int
    role: MessageRole
    content: str = ""
    lifecycle: MessageLifecycle = MessageLifecycle.SETTLED
    attachment: Attachment | None = None
    unstable_suffix: str = ""
    sources: list[Source] = field(default_factory=list)
    error_detail: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
