"""Answer generation over an OpenAI-compatible chat completions endpoint."""

import logging
from dataclasses import dataclass, field
from typing import Any

from openai import AuthenticationError, OpenAIError, PermissionDeniedError

from src.core.config import Settings, get_settings
from src.core.openai import TimedAsyncOpenAIClient, get_openai_client
from src.models.message import Attachment, Source
from src.services.history_window import Turn
from src.services.message_state import ERROR_NOTICE, MALFORMED_NOTICE

logger = logging.getLogger(__name__)

AUTH_FAILURE_DETAIL = (
    "Authentication failed: check that the API key is set, valid and allowed "
    "to use the configured model."
)

MOCK_RESPONSE = (
    "[MOCK] Thanks for your question! Here is a **short answer** with a bit of "
    "*emphasis* and some `inline code`.\n\n"
    "- Point one\n"
    "- Point two\n\n"
    "Ask me anything else!"
)


class UpstreamFailureError(Exception):
    """The collaborator failed or reported an error.

    ``notice`` is what the user sees; ``detail`` is kept for diagnostics.
    """

    notice = ERROR_NOTICE

    def __init__(self, detail: str, notice: str | None = None):
        self.detail = detail
        if notice is not None:
            self.notice = notice
        super().__init__(detail)


class MalformedResponseError(UpstreamFailureError):
    """The collaborator answered without usable text."""

    notice = MALFORMED_NOTICE


@dataclass
class AnswerRequest:
    """Payload sent to the collaborator for one turn."""

    prompt: str
    history: list[Turn] = field(default_factory=list)
    attachment: Attachment | None = None


@dataclass
class AnswerResult:
    """Complete answer for one turn."""

    text: str
    sources: list[Source] = field(default_factory=list)


class AnswerService:
    """Turns an AnswerRequest into a chat completion and back."""

    def __init__(
        self,
        client: TimedAsyncOpenAIClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize answer service.

        Args:
            client: Optional upstream client for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> TimedAsyncOpenAIClient:
        """Get the upstream client."""
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def build_messages(self, request: AnswerRequest) -> list[dict[str, Any]]:
        """Build the chat completions message list.

        Args:
            request: The turn payload.

        Returns:
            list[dict]: System prompt, history, then the user prompt.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.settings.system_prompt}
        ]

        for turn in request.history:
            messages.append({"role": turn.role, "content": turn.text})

        if request.attachment is not None and request.attachment.is_image:
            user_content: Any = [
                {"type": "text", "text": request.prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": request.attachment.to_data_uri()},
                },
            ]
        else:
            if request.attachment is not None:
                logger.warning(
                    "Dropping non-image attachment %s (%s)",
                    request.attachment.filename,
                    request.attachment.mime_type,
                )
            user_content = request.prompt

        messages.append({"role": "user", "content": user_content})
        return messages

    @staticmethod
    def extract_sources(message: Any) -> list[Source]:
        """Collect url citations attached to a completion message."""
        sources: list[Source] = []
        for annotation in getattr(message, "annotations", None) or []:
            if getattr(annotation, "type", None) != "url_citation":
                continue
            citation = getattr(annotation, "url_citation", None)
            uri = getattr(citation, "url", None)
            title = getattr(citation, "title", None)
            if uri and title:
                sources.append({"uri": uri, "title": title})
        return sources

    def parse_response(self, response: Any) -> AnswerResult:
        """Extract text and sources from a chat completion.

        Raises:
            MalformedResponseError: If the completion carries no text.
        """
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise MalformedResponseError("Upstream returned no choices")

        message = choices[0].message
        text = getattr(message, "content", None)
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponseError("Upstream returned an empty answer")

        return AnswerResult(text=text, sources=self.extract_sources(message))

    async def generate(self, request: AnswerRequest) -> AnswerResult:
        """Generate the complete answer for one turn.

        Args:
            request: The turn payload.

        Returns:
            AnswerResult: Answer text, unchanged, and its sources.

        Raises:
            UpstreamFailureError: If the call fails.
            MalformedResponseError: If the answer has no usable text.
        """
        if self.settings.mock_openai:
            logger.info("Mock mode enabled - returning mock response")
            return AnswerResult(text=MOCK_RESPONSE)

        if not self.settings.openai_api_key:
            raise UpstreamFailureError("Authentication failed: API key is missing (OPENAI_API_KEY)")

        try:
            response = await self.client.chat.create(
                model=self.settings.openai_model,
                messages=self.build_messages(request),  # type: ignore[arg-type]
            )
        except (AuthenticationError, PermissionDeniedError) as e:
            logger.error("Upstream rejected credentials: %s", str(e))
            raise UpstreamFailureError(f"{AUTH_FAILURE_DETAIL} ({e.status_code})") from e
        except OpenAIError as e:
            logger.error("Upstream API error: %s", str(e))
            raise UpstreamFailureError(str(e)) from e

        return self.parse_response(response)
