"""Conversation controller for assistant turns.

Owns the conversation, the request orchestrator, the reveal scheduler and
the single active assistant turn. All mutations run on the event loop
thread; every one checks that its turn is still the active one so stale
ticks or late network results are dropped instead of applied.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import Any

from src.core.config import Settings, get_settings
from src.models.conversation import Conversation
from src.models.message import (
    Attachment,
    Message,
    MessageLifecycle,
    MessageRole,
    Source,
)
from src.services.answer_service import AnswerService
from src.services.history_window import Turn, project
from src.services.markdown_splitter import split
from src.services.message_state import MessageStateMachine
from src.services.request_orchestrator import (
    AnswerGenerator,
    RequestCancelledError,
    RequestOrchestrator,
    UpstreamFailureError,
)
from src.services.reveal_scheduler import RevealHandle, RevealScheduler

logger = logging.getLogger(__name__)

MessageListener = Callable[[Message], None]


@dataclass
class ActiveTurn:
    """The assistant turn currently pending or revealing."""

    machine: MessageStateMachine
    task: asyncio.Task | None = None
    reveal: RevealHandle | None = None

    @property
    def message(self) -> Message:
        return self.machine.message


class AssistantService:
    """Service for assistant turns in one conversation."""

    def __init__(
        self,
        generator: AnswerGenerator | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            generator: Optional answer collaborator for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        self.conversation = Conversation()
        self.orchestrator = RequestOrchestrator(
            generator or AnswerService(settings=self.settings),
            timeout_seconds=self.settings.upstream_timeout_seconds,
        )
        self.scheduler = RevealScheduler(self.settings.reveal_interval_ms)
        self.last_error: str | None = None
        self._active: ActiveTurn | None = None
        self._listeners: list[MessageListener] = []

    @property
    def is_busy(self) -> bool:
        """Whether an assistant message is pending or revealing."""
        return self._active is not None

    @property
    def active_message(self) -> Message | None:
        return self._active.message if self._active else None

    @property
    def revealed_length(self) -> int:
        """Characters revealed so far in the active turn."""
        if self._active is None or self._active.reveal is None:
            return 0
        return self._active.reveal.index

    def messages(self) -> list[Message]:
        return self.conversation.messages

    def get_message(self, message_id: int) -> Message | None:
        return self.conversation.get(message_id)

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        """Register a listener called with each message after it changes.

        Returns:
            Callable: Unsubscribe function.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def load_history(self, rows: Iterable[dict[str, Any]]) -> list[Message]:
        """Seed the conversation with messages from the conversation store.

        Args:
            rows: Dicts with ``role`` and ``content`` and optional ``sources``.

        Returns:
            list[Message]: The appended messages, all settled.
        """
        loaded = [
            self.conversation.append(
                role=MessageRole(row["role"]),
                content=row["content"],
                sources=row.get("sources"),
            )
            for row in rows
        ]
        logger.info("Loaded %d message(s) into conversation", len(loaded))
        return loaded

    def build_context(self) -> list[Turn]:
        """Project the current conversation into the Turn Context."""
        return project(
            self.conversation,
            self.settings.history_max_turns,
            self.settings.upstream_assistant_role,
        )

    async def submit(
        self,
        prompt: str,
        attachment: Attachment | None = None,
    ) -> tuple[Message, Message]:
        """Start a new turn.

        Any active turn is stopped first: its reveal is cancelled and its
        request aborted before the new request is issued.

        Args:
            prompt: Raw prompt text.
            attachment: Optional uploaded file.

        Returns:
            tuple: (user_message, assistant_placeholder)

        Raises:
            ValueError: If the prompt is blank.
        """
        prompt = prompt.strip()
        if not prompt:
            raise ValueError("Prompt must not be empty")

        self._teardown_active()

        history = self.build_context()

        user_message = self.conversation.append(
            role=MessageRole.USER,
            content=prompt,
            attachment=attachment,
        )
        assistant_message = self.conversation.append(
            role=MessageRole.ASSISTANT,
            lifecycle=MessageLifecycle.PENDING,
        )

        turn = ActiveTurn(machine=MessageStateMachine(assistant_message))
        self._active = turn
        self.last_error = None
        self._notify(user_message)
        self._notify(assistant_message)

        turn.task = asyncio.create_task(self._run_turn(turn, prompt, history, attachment))
        logger.info(
            "Submitted turn: message %d, %d history turn(s)%s",
            assistant_message.id,
            len(history),
            " with attachment" if attachment else "",
        )
        return user_message, assistant_message

    def cancel(self) -> Message | None:
        """Stop the active turn.

        Returns:
            Message | None: The stopped assistant message, or None when idle.
        """
        message = self._teardown_active()
        if message is not None:
            logger.info("Cancelled turn: message %d stopped", message.id)
        return message

    async def wait_idle(self) -> None:
        """Wait until the active turn settles, stops or fails."""
        turn = self._active
        if turn is None:
            return
        if turn.task is not None:
            await asyncio.gather(turn.task, return_exceptions=True)
        if turn.reveal is not None:
            await turn.reveal.wait()

    async def shutdown(self) -> None:
        """Stop the active turn and its task."""
        turn = self._active
        self.cancel()
        if turn is not None and turn.task is not None and not turn.task.done():
            turn.task.cancel()
            await asyncio.gather(turn.task, return_exceptions=True)

    def _is_current(self, turn: ActiveTurn) -> bool:
        return self._active is turn and not turn.machine.is_terminal

    def _teardown_active(self) -> Message | None:
        turn = self._active
        if turn is None:
            return None
        self._active = None

        if turn.reveal is not None:
            turn.reveal.cancel()
        self.scheduler.cancel()
        if self.orchestrator.has_pending:
            logger.debug("Aborting request for message %d", turn.message.id)
        self.orchestrator.cancel()
        if turn.task is not None and not turn.task.done():
            turn.task.cancel()

        if not turn.machine.is_terminal:
            turn.machine.stop()
            self._notify(turn.message)
        return turn.message

    async def _run_turn(
        self,
        turn: ActiveTurn,
        prompt: str,
        history: list[Turn],
        attachment: Attachment | None,
    ) -> None:
        message_id = turn.message.id
        if not self._is_current(turn):
            logger.debug("Skipping request for stopped message %d", message_id)
            return

        try:
            result = await self.orchestrator.send(prompt, history, attachment)
        except RequestCancelledError:
            logger.debug("Request for message %d aborted", message_id)
            return
        except UpstreamFailureError as e:
            if not self._is_current(turn):
                logger.debug("Dropping stale failure for message %d", message_id)
                return
            logger.warning("Turn for message %d failed: %s", message_id, e.detail)
            self.last_error = e.detail
            turn.machine.fail(e.detail, e.notice)
            self._active = None
            self._notify(turn.message)
            return

        if not self._is_current(turn):
            logger.debug("Dropping stale answer for message %d", message_id)
            return

        turn.machine.begin_reveal()
        self._notify(turn.message)
        if not self._is_current(turn):
            return
        turn.reveal = self.scheduler.reveal(
            result.text,
            on_chunk=partial(self._on_chunk, turn),
            on_complete=partial(self._on_complete, turn, result.sources),
            target_id=message_id,
        )

    def _on_chunk(self, turn: ActiveTurn, prefix: str) -> None:
        if not self._is_current(turn):
            logger.debug("Dropping stale tick for message %d", turn.message.id)
            return
        stable, unstable = split(prefix)
        turn.machine.write(stable, unstable)
        self._notify(turn.message)

    def _on_complete(self, turn: ActiveTurn, sources: list[Source], final_text: str) -> None:
        if not self._is_current(turn):
            logger.debug("Dropping stale completion for message %d", turn.message.id)
            return
        turn.machine.settle(final_text, sources)
        self._active = None
        self._notify(turn.message)
        logger.info("Message %d settled (%d chars)", turn.message.id, len(final_text))

    def _notify(self, message: Message) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning("Message listener failed: %s", e)


# Global singleton instance
_assistant_service: AssistantService | None = None


def create_assistant_service(settings: Settings | None = None) -> AssistantService:
    """Create a controller seeded with the configured greeting."""
    service = AssistantService(settings=settings)
    if service.settings.greeting_message:
        service.load_history(
            [{"role": MessageRole.ASSISTANT.value, "content": service.settings.greeting_message}]
        )
    return service


def get_assistant_service() -> AssistantService:
    """Get or create the global assistant service instance."""
    global _assistant_service
    if _assistant_service is None:
        _assistant_service = create_assistant_service()
    return _assistant_service


async def init_assistant_service() -> AssistantService:
    """Create the assistant service. Call at app startup."""
    return get_assistant_service()


async def shutdown_assistant_service() -> None:
    """Stop any active turn. Call at app shutdown."""
    global _assistant_service
    if _assistant_service:
        await _assistant_service.shutdown()
        _assistant_service = None
