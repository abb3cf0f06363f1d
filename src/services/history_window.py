"""Bounded, role-normalized history sent as context with a new request."""

from collections.abc import Iterable
from dataclasses import dataclass

from src.models.message import Message, MessageLifecycle, MessageRole

# Lifecycles whose content is complete enough to be sent back upstream.
# Stopped answers are kept: the user saw them and may refer to them.
CONTEXT_LIFECYCLES = frozenset({MessageLifecycle.SETTLED, MessageLifecycle.STOPPED})


@dataclass(frozen=True)
class Turn:
    """One history entry in the upstream vocabulary."""

    role: str
    text: str


def to_upstream_role(role: MessageRole, assistant_role: str = "assistant") -> str:
    """Map an internal role to the name the upstream collaborator expects.

    This is the only place where the two vocabularies meet.
    """
    if role == MessageRole.ASSISTANT:
        return assistant_role
    return "user"


def project(
    messages: Iterable[Message],
    max_turns: int,
    assistant_role: str = "assistant",
) -> list[Turn]:
    """Project the conversation into the Turn Context.

    Placeholders, in-flight and errored messages are dropped, then the last
    ``max_turns`` user/assistant pairs are kept.

    Args:
        messages: Conversation messages in order. Must not contain the
            turn being composed.
        max_turns: Number of user/assistant pairs to keep.
        assistant_role: Upstream name for assistant turns.

    Returns:
        list[Turn]: Oldest first.
    """
    if max_turns <= 0:
        return []

    completed = [
        m for m in messages if m.lifecycle in CONTEXT_LIFECYCLES and m.content
    ]
    window = completed[-(max_turns * 2):]

    return [
        Turn(role=to_upstream_role(m.role, assistant_role), text=m.content)
        for m in window
    ]
