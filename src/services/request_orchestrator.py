"""Single-flight, cancellable request to the answer collaborator."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from src.models.message import Attachment
from src.services.answer_service import (
    AnswerRequest,
    AnswerResult,
    MalformedResponseError,
    UpstreamFailureError,
)
from src.services.history_window import Turn

logger = logging.getLogger(__name__)

__all__ = [
    "AnswerGenerator",
    "MalformedResponseError",
    "RequestCancelledError",
    "RequestOrchestrator",
    "UpstreamFailureError",
]


class AnswerGenerator(Protocol):
    """Anything that can produce a complete answer for a turn."""

    async def generate(self, request: AnswerRequest) -> AnswerResult: ...


class RequestCancelledError(Exception):
    """The in-flight request was aborted by the user. Not an error."""


@dataclass
class _InFlight:
    """Cancellation token for one outstanding call."""

    task: asyncio.Task
    cancelled: bool = False


class RequestOrchestrator:
    """Issues at most one outstanding answer request at a time.

    Failures come back as exceptions: RequestCancelledError for aborts,
    UpstreamFailureError (or MalformedResponseError) for everything else.
    Nothing is retried here.
    """

    def __init__(
        self,
        generator: AnswerGenerator,
        timeout_seconds: float | None = None,
    ) -> None:
        self._generator = generator
        self._timeout_seconds = timeout_seconds
        self._in_flight: _InFlight | None = None

    @property
    def has_pending(self) -> bool:
        return self._in_flight is not None and not self._in_flight.task.done()

    @staticmethod
    def build_request(
        prompt: str,
        history: Sequence[Turn],
        attachment: Attachment | None = None,
    ) -> AnswerRequest:
        return AnswerRequest(prompt=prompt, history=list(history), attachment=attachment)

    async def send(
        self,
        prompt: str,
        history: Sequence[Turn],
        attachment: Attachment | None = None,
    ) -> AnswerResult:
        """Send one request and wait for the complete answer.

        A call still outstanding from an earlier send is cancelled first.

        Args:
            prompt: The user's prompt.
            history: Projected Turn Context.
            attachment: Optional uploaded file.

        Returns:
            AnswerResult: Answer text, unchanged.

        Raises:
            RequestCancelledError: If cancel() aborted this call.
            UpstreamFailureError: If the call failed.
        """
        self.cancel()

        request = self.build_request(prompt, history, attachment)
        call = _InFlight(task=asyncio.create_task(self._call(request)))
        self._in_flight = call

        try:
            return await call.task
        except asyncio.CancelledError:
            if call.cancelled:
                raise RequestCancelledError() from None
            call.task.cancel()
            raise
        except UpstreamFailureError:
            raise
        except Exception as e:
            logger.error("Unexpected error from answer generator: %s", str(e))
            raise UpstreamFailureError(f"{type(e).__name__}: {str(e)}") from e
        finally:
            if self._in_flight is call:
                self._in_flight = None

    async def _call(self, request: AnswerRequest) -> AnswerResult:
        if self._timeout_seconds is None:
            return await self._generator.generate(request)

        try:
            return await asyncio.wait_for(
                self._generator.generate(request), self._timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise UpstreamFailureError(
                f"No answer within {self._timeout_seconds:g} seconds"
            ) from e

    def cancel(self) -> bool:
        """Abort the outstanding call, if any.

        Returns:
            bool: True if a pending call was aborted.
        """
        call = self._in_flight
        self._in_flight = None
        if call is None or call.task.done():
            return False

        call.cancelled = True
        call.task.cancel()
        logger.info("Aborted pending answer request")
        return True
