"""Assistant conversation API routes."""

import logging

from fastapi import APIRouter, status

from src.api.deps import Assistant
from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.schemas.message import (
    CancelResponse,
    ConversationResponse,
    MessageResponse,
    MessageSubmit,
    SubmitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.get(
    "/messages",
    response_model=ConversationResponse,
    summary="Get conversation state",
    description="Returns every message with its lifecycle, visible content and unstable suffix.",
)
async def list_messages(assistant: Assistant) -> ConversationResponse:
    """Return the rendered state of the conversation.

    Args:
        assistant: The conversation controller.

    Returns:
        ConversationResponse: Messages in order plus busy/error state.
    """
    return ConversationResponse(
        messages=[MessageResponse.from_message(m) for m in assistant.messages()],
        is_busy=assistant.is_busy,
        last_error=assistant.last_error,
    )


@router.get(
    "/messages/{message_id}",
    response_model=MessageResponse,
    summary="Get one message",
)
async def get_message(message_id: int, assistant: Assistant) -> MessageResponse:
    """Return the rendered state of a single message.

    Raises:
        NotFoundError: If no message has this id.
    """
    message = assistant.get_message(message_id)
    if message is None:
        raise NotFoundError(f"Message {message_id} not found")
    return MessageResponse.from_message(message)


@router.post(
    "/messages",
    response_model=SubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a prompt",
    description=(
        "Starts a new turn. Any answer still pending or revealing is stopped first. "
        "The answer is revealed progressively; poll the conversation to observe it."
    ),
)
async def submit_message(data: MessageSubmit, assistant: Assistant) -> SubmitResponse:
    """Submit a prompt and return the two messages it created.

    Args:
        data: Prompt and optional attachment.
        assistant: The conversation controller.

    Returns:
        SubmitResponse: The user message and the pending assistant message.
    """
    attachment = data.attachment.to_attachment() if data.attachment else None
    try:
        user_message, assistant_message = await assistant.submit(data.prompt, attachment)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    return SubmitResponse(
        user_message=MessageResponse.from_message(user_message),
        assistant_message=MessageResponse.from_message(assistant_message),
    )


@router.post(
    "/cancel",
    response_model=CancelResponse,
    summary="Stop the current answer",
    description="Stops the reveal and aborts the pending request. A no-op when idle.",
)
async def cancel(assistant: Assistant) -> CancelResponse:
    """Stop the active turn, if any."""
    message = assistant.cancel()
    return CancelResponse(
        stopped=message is not None,
        message=MessageResponse.from_message(message) if message else None,
    )
