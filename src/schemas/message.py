"""Message Pydantic schemas for API request/response models."""

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.message import Attachment, Message, MessageLifecycle, MessageRole


class AttachmentPayload(BaseModel):
    """Uploaded file sent with a prompt."""

    model_config = ConfigDict(from_attributes=True)

    filename: str = Field(..., min_length=1, max_length=255, description="Original file name")
    mime_type: str = Field(default="image/jpeg", description="MIME type of the file")
    data: str = Field(..., min_length=1, description="Base64-encoded file body")

    @field_validator("mime_type")
    @classmethod
    def validate_image_type(cls, value: str) -> str:
        """Only images can be sent with a prompt."""
        if not value.startswith("image/"):
            raise ValueError("mime_type must be an image type")
        return value

    @field_validator("data")
    @classmethod
    def validate_base64(cls, value: str) -> str:
        """Reject payloads that are not valid base64."""
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("data must be base64-encoded") from e
        return value

    def to_attachment(self) -> Attachment:
        return Attachment(filename=self.filename, mime_type=self.mime_type, data=self.data)


class AttachmentResponse(BaseModel):
    """Attachment reference shown alongside a user message."""

    model_config = ConfigDict(from_attributes=True)

    filename: str = Field(description="Original file name")
    mime_type: str = Field(description="MIME type of the file")


class SourceResponse(BaseModel):
    """Grounding source of an assistant answer."""

    uri: str = Field(description="Source URL")
    title: str = Field(description="Source title")


class MessageSubmit(BaseModel):
    """Schema for submitting a new turn."""

    model_config = ConfigDict(from_attributes=True)

    prompt: str = Field(..., min_length=1, max_length=10000, description="Prompt text")
    attachment: AttachmentPayload | None = Field(default=None, description="Optional uploaded file")

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value


class MessageResponse(BaseModel):
    """Rendered state of one message."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Message identifier, increasing in creation order")
    role: MessageRole = Field(description="Message role (user/assistant)")
    lifecycle: MessageLifecycle = Field(description="pending/revealing/settled/stopped/errored")
    content: str = Field(description="Text safe to render as formatted markdown")
    unstable_suffix: str = Field(
        default="",
        description="Revealed text withheld from formatting until its markup closes",
    )
    attachment: AttachmentResponse | None = Field(default=None, description="Uploaded file reference")
    sources: list[SourceResponse] = Field(default_factory=list, description="Grounding sources")
    created_at: datetime = Field(description="Creation timestamp")

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        """Build the response from a conversation message."""
        attachment = None
        if message.attachment is not None:
            attachment = AttachmentResponse(
                filename=message.attachment.filename,
                mime_type=message.attachment.mime_type,
            )

        return cls(
            id=message.id,
            role=message.role,
            lifecycle=message.lifecycle,
            content=message.content,
            unstable_suffix=message.unstable_suffix,
            attachment=attachment,
            sources=[SourceResponse(**source) for source in message.sources],
            created_at=message.created_at,
        )


class ConversationResponse(BaseModel):
    """Schema for the conversation state."""

    model_config = ConfigDict(from_attributes=True)

    messages: list[MessageResponse] = Field(description="Messages in order")
    is_busy: bool = Field(default=False, description="Whether an answer is pending or revealing")
    last_error: str | None = Field(default=None, description="Diagnostic text of the last failed turn")


class SubmitResponse(BaseModel):
    """Schema for a submitted turn."""

    model_config = ConfigDict(from_attributes=True)

    user_message: MessageResponse = Field(description="The user's message")
    assistant_message: MessageResponse = Field(description="The assistant placeholder")


class CancelResponse(BaseModel):
    """Schema for a cancellation request."""

    model_config = ConfigDict(from_attributes=True)

    stopped: bool = Field(description="Whether an active turn was stopped")
    message: MessageResponse | None = Field(default=None, description="The stopped assistant message")
