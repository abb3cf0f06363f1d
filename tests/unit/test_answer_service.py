"""Unit tests for AnswerService."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError, AuthenticationError, PermissionDeniedError

from src.services.answer_service import (
    AUTH_FAILURE_DETAIL,
    MOCK_RESPONSE,
    AnswerRequest,
    AnswerService,
    MalformedResponseError,
    UpstreamFailureError,
)
from src.services.history_window import Turn
from src.services.message_state import ERROR_NOTICE, MALFORMED_NOTICE

UPSTREAM_REQUEST = httpx.Request("POST", "https://upstream.test/v1/chat/completions")


def _completion(content, annotations=None):
    message = SimpleNamespace(content=content, annotations=annotations)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


def _citation(url, title):
    return SimpleNamespace(
        type="url_citation",
        url_citation=SimpleNamespace(url=url, title=title),
    )


def _service(make_settings, response=None, error=None, **overrides):
    client = MagicMock()
    client.chat.create = AsyncMock(return_value=response, side_effect=error)
    return AnswerService(client=client, settings=make_settings(**overrides)), client


class TestBuildMessages:
    """Tests for build_messages method."""

    def test_system_history_then_prompt(self, make_settings) -> None:
        """Test message order sent upstream."""
        service, _ = _service(make_settings, system_prompt="Be brief.")
        request = AnswerRequest(
            prompt="And now?",
            history=[Turn(role="user", text="Hi"), Turn(role="assistant", text="Hello!")],
        )

        messages = service.build_messages(request)

        assert messages == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "And now?"},
        ]

    def test_image_attachment_becomes_content_part(
        self, make_settings, image_attachment
    ) -> None:
        """Test that an image is sent inline as a data URI."""
        service, _ = _service(make_settings)
        request = AnswerRequest(prompt="What is this?", attachment=image_attachment)

        content = service.build_messages(request)[-1]["content"]

        assert content[0] == {"type": "text", "text": "What is this?"}
        assert content[1]["type"] == "image_url"
        assert content[1]["image_url"]["url"] == "data:image/png;base64,iVBORw0KGgo="

    def test_non_image_attachment_is_not_inlined(self, make_settings, caplog) -> None:
        """Test that only images are inlined and a dropped file is logged."""
        from src.models.message import Attachment

        service, _ = _service(make_settings)
        attachment = Attachment(filename="notes.txt", mime_type="text/plain", data="aGk=")
        request = AnswerRequest(prompt="Read this", attachment=attachment)

        with caplog.at_level(logging.WARNING, logger="src.services.answer_service"):
            messages = service.build_messages(request)

        assert messages[-1] == {"role": "user", "content": "Read this"}
        assert "Dropping non-image attachment notes.txt (text/plain)" in caplog.text


class TestGenerate:
    """Tests for generate method."""

    @pytest.mark.asyncio
    async def test_returns_text_and_sources(self, make_settings) -> None:
        """Test that text is returned unchanged with its citations."""
        response = _completion(
            "Hi **there**!",
            annotations=[
                _citation("https://a.example", "A"),
                SimpleNamespace(type="file_citation"),
                _citation("https://b.example", "B"),
            ],
        )
        service, client = _service(make_settings, response=response, openai_model="gemini-test")

        result = await service.generate(AnswerRequest(prompt="Hello"))

        assert result.text == "Hi **there**!"
        assert result.sources == [
            {"uri": "https://a.example", "title": "A"},
            {"uri": "https://b.example", "title": "B"},
        ]
        assert client.chat.create.await_args.kwargs["model"] == "gemini-test"

    @pytest.mark.asyncio
    async def test_empty_answer_is_malformed(self, make_settings) -> None:
        """Test that a blank answer is reported as malformed."""
        service, _ = _service(make_settings, response=_completion("   "))

        with pytest.raises(MalformedResponseError) as exc_info:
            await service.generate(AnswerRequest(prompt="Hello"))

        assert exc_info.value.notice == MALFORMED_NOTICE

    @pytest.mark.asyncio
    async def test_no_choices_is_malformed(self, make_settings) -> None:
        service, _ = _service(make_settings, response=SimpleNamespace(choices=[]))

        with pytest.raises(MalformedResponseError):
            await service.generate(AnswerRequest(prompt="Hello"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error_cls", "status_code"),
        [(AuthenticationError, 401), (PermissionDeniedError, 403)],
    )
    async def test_auth_errors_get_specific_detail(
        self, make_settings, error_cls, status_code
    ) -> None:
        """Test that rejected credentials produce the authentication detail."""
        error = error_cls(
            "denied",
            response=httpx.Response(status_code, request=UPSTREAM_REQUEST),
            body=None,
        )
        service, _ = _service(make_settings, error=error)

        with pytest.raises(UpstreamFailureError) as exc_info:
            await service.generate(AnswerRequest(prompt="Hello"))

        assert exc_info.value.detail.startswith(AUTH_FAILURE_DETAIL)
        assert f"({status_code})" in exc_info.value.detail
        assert exc_info.value.notice == ERROR_NOTICE

    @pytest.mark.asyncio
    async def test_connection_error_is_upstream_failure(self, make_settings) -> None:
        """Test that transport errors become upstream failures."""
        service, _ = _service(make_settings, error=APIConnectionError(request=UPSTREAM_REQUEST))

        with pytest.raises(UpstreamFailureError) as exc_info:
            await service.generate(AnswerRequest(prompt="Hello"))

        assert not isinstance(exc_info.value, MalformedResponseError)

    @pytest.mark.asyncio
    async def test_missing_api_key(self, make_settings) -> None:
        """Test that no call is made without an API key."""
        service, client = _service(make_settings, openai_api_key="")

        with pytest.raises(UpstreamFailureError, match="API key is missing"):
            await service.generate(AnswerRequest(prompt="Hello"))

        client.chat.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_mock_mode_skips_upstream(self, make_settings) -> None:
        """Test that mock mode answers without calling the client."""
        service, client = _service(make_settings, mock_openai=True)

        result = await service.generate(AnswerRequest(prompt="Hello"))

        assert result.text == MOCK_RESPONSE
        client.chat.create.assert_not_called()
