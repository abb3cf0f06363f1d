"""Conversation model: an insertion-ordered sequence of messages."""

import itertools
from collections.abc import Iterator

from src.models.message import Attachment, Message, MessageLifecycle, MessageRole, Source


class Conversation:
    """Insertion-ordered messages with monotonically assigned ids.

    Messages are never removed; deletion belongs to the conversation store.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._by_id: dict[int, Message] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the messages in order."""
        return list(self._messages)

    def get(self, message_id: int) -> Message | None:
        return self._by_id.get(message_id)

    def append(
        self,
        role: MessageRole,
        content: str = "",
        lifecycle: MessageLifecycle = MessageLifecycle.SETTLED,
        attachment: Attachment | None = None,
        sources: list[Source] | None = None,
    ) -> Message:
        """Create a message with the next id and append it.

        Args:
            role: Message author.
            content: Initial visible text.
            lifecycle: Initial lifecycle.
            attachment: Optional uploaded file.
            sources: Optional grounding sources.

        Returns:
            Message: The appended message.
        """
        message = Message(
            id=next(self._ids),
            role=role,
            content=content,
            lifecycle=lifecycle,
            attachment=attachment,
            sources=list(sources or []),
        )
        self._messages.append(message)
        self._by_id[message.id] = message
        return message
