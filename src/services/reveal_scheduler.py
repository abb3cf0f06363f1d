"""Cancellable, time-sliced reveal of a complete answer."""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]
CompleteCallback = Callable[[str], None]


class RevealHandle:
    """Handle to one reveal session.

    The session runs as an asyncio task. ``cancel()`` sets a flag that the
    session checks before every emission, so a tick whose sleep already
    finished when cancellation happened is still dropped.
    """

    def __init__(self, full_text: str, target_id: int | None = None) -> None:
        self.full_text = full_text
        self.target_id = target_id
        self.index = 0
        self._cancelled = False
        self._completed = False
        self._task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def done(self) -> bool:
        return self._cancelled or self._completed

    def cancel(self) -> bool:
        """Stop further ticks immediately.

        Idempotent; a no-op after natural completion.

        Returns:
            bool: True if this call stopped a running session.
        """
        if self.done:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Reveal cancelled at %d/%d", self.index, len(self.full_text))
        return True

    async def wait(self) -> None:
        """Wait until the session completes or is cancelled."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class RevealScheduler:
    """Emits growing prefixes of a text at a fixed cadence.

    One scheduler serves one conversation and keeps at most one active
    session: starting a reveal cancels the previous session synchronously.
    """

    def __init__(self, interval_ms: int = 15) -> None:
        self.interval_ms = interval_ms
        self._active: RevealHandle | None = None

    @property
    def active(self) -> RevealHandle | None:
        """The running session, if any."""
        if self._active is not None and self._active.done:
            self._active = None
        return self._active

    def cancel(self) -> bool:
        """Cancel the active session, if any."""
        handle = self._active
        self._active = None
        return handle.cancel() if handle is not None else False

    def reveal(
        self,
        full_text: str,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        interval_ms: int | None = None,
        target_id: int | None = None,
    ) -> RevealHandle:
        """Start revealing ``full_text`` one character per tick.

        ``on_chunk`` receives ``full_text[:i]`` for ``i = 1..len``; then
        ``on_complete`` receives the literal full text.

        Args:
            full_text: The complete answer.
            on_chunk: Called with each growing prefix.
            on_complete: Called once after the last chunk.
            interval_ms: Override of the per-character delay.
            target_id: Message id the session writes into (for logging).

        Returns:
            RevealHandle: Handle used to cancel or await the session.
        """
        self.cancel()

        delay = (self.interval_ms if interval_ms is None else interval_ms) / 1000
        handle = RevealHandle(full_text, target_id)
        handle._task = asyncio.create_task(
            self._run(handle, delay, on_chunk, on_complete)
        )
        self._active = handle
        return handle

    async def _run(
        self,
        handle: RevealHandle,
        delay: float,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
    ) -> None:
        text = handle.full_text
        for i in range(1, len(text) + 1):
            await asyncio.sleep(delay)
            if handle.cancelled:
                return
            handle.index = i
            on_chunk(text[:i])

        if handle.cancelled:
            return
        handle._completed = True
        if self._active is handle:
            self._active = None
        on_complete(text)
