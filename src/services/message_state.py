"""Lifecycle state machine for a single assistant message."""

import logging

from src.models.message import Message, MessageLifecycle, Source

logger = logging.getLogger(__name__)

ERROR_NOTICE = (
    "Sorry, something went wrong while generating a response. Please try again."
)
MALFORMED_NOTICE = "Sorry, I couldn't generate a response for this request."

ALLOWED_TRANSITIONS: dict[MessageLifecycle, frozenset[MessageLifecycle]] = {
    MessageLifecycle.PENDING: frozenset(
        {MessageLifecycle.REVEALING, MessageLifecycle.STOPPED, MessageLifecycle.ERRORED}
    ),
    MessageLifecycle.REVEALING: frozenset(
        {MessageLifecycle.SETTLED, MessageLifecycle.STOPPED, MessageLifecycle.ERRORED}
    ),
    MessageLifecycle.SETTLED: frozenset(),
    MessageLifecycle.STOPPED: frozenset(),
    MessageLifecycle.ERRORED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a lifecycle transition is not allowed."""

    def __init__(self, message_id: int, current: MessageLifecycle, target: MessageLifecycle):
        self.message_id = message_id
        self.current = current
        self.target = target
        super().__init__(
            f"Message {message_id}: cannot go from {current.value} to {target.value}"
        )


class MessageStateMachine:
    """Owns the lifecycle of one assistant message.

    pending -> revealing -> settled, with revealing|pending -> stopped and
    pending|revealing -> errored. settled, stopped and errored are terminal.
    """

    def __init__(self, message: Message) -> None:
        self.message = message

    @property
    def lifecycle(self) -> MessageLifecycle:
        return self.message.lifecycle

    @property
    def is_terminal(self) -> bool:
        return self.message.lifecycle.is_terminal

    def can_transition(self, target: MessageLifecycle) -> bool:
        return target in ALLOWED_TRANSITIONS[self.message.lifecycle]

    def _transition(self, target: MessageLifecycle) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.message.id, self.message.lifecycle, target)
        logger.debug(
            "Message %d: %s -> %s",
            self.message.id,
            self.message.lifecycle.value,
            target.value,
        )
        self.message.lifecycle = target

    def begin_reveal(self) -> None:
        """The answer is known and the reveal starts."""
        self._transition(MessageLifecycle.REVEALING)

    def write(self, stable: str, unstable: str = "") -> None:
        """Apply one reveal tick."""
        if self.message.lifecycle != MessageLifecycle.REVEALING:
            raise InvalidTransitionError(
                self.message.id, self.message.lifecycle, MessageLifecycle.REVEALING
            )
        self.message.content = stable
        self.message.unstable_suffix = unstable

    def settle(self, final_text: str, sources: list[Source] | None = None) -> None:
        """Reveal finished: show the literal final text."""
        self._transition(MessageLifecycle.SETTLED)
        self.message.content = final_text
        self.message.unstable_suffix = ""
        if sources:
            self.message.sources = list(sources)

    def stop(self) -> None:
        """User cancelled: freeze content at the last written value."""
        self._transition(MessageLifecycle.STOPPED)
        self.message.unstable_suffix = ""

    def fail(self, detail: str, notice: str = ERROR_NOTICE) -> None:
        """Terminal failure: replace content with a fixed notice."""
        self._transition(MessageLifecycle.ERRORED)
        self.message.content = notice
        self.message.unstable_suffix = ""
        self.message.error_detail = detail
