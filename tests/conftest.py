"""Pytest configuration and fixtures."""

import asyncio
import os
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-openai-key")
os.environ.setdefault("MOCK_OPENAI", "true")
os.environ.setdefault("REVEAL_INTERVAL_MS", "0")

from src.models.message import Attachment  # noqa: E402
from src.services.answer_service import AnswerRequest, AnswerResult  # noqa: E402


class FakeAnswerGenerator:
    """Scripted answer collaborator.

    Each call consumes the next script item: a string is returned as the
    answer, an exception is raised, an AnswerResult is returned as-is and
    BLOCK waits until the call is cancelled.
    """

    BLOCK = object()

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.requests: list[AnswerRequest] = []
        self.cancelled = 0

    async def generate(self, request: AnswerRequest) -> AnswerResult:
        self.requests.append(request)
        item = self.script.pop(0) if self.script else "ok"

        if item is self.BLOCK:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, AnswerResult):
            return item
        return AnswerResult(text=item)


@pytest.fixture
def fake_generator_cls() -> type[FakeAnswerGenerator]:
    """Provide the scripted generator class."""
    return FakeAnswerGenerator


@pytest.fixture
def make_settings() -> Any:
    """Provide a factory for isolated Settings instances.

    Defaults suit unit tests: no greeting, instant reveal, real (not mock)
    upstream path.
    """
    from src.core.config import Settings

    def _make(**overrides: Any) -> Any:
        values: dict[str, Any] = {
            "mock_openai": False,
            "openai_api_key": "sk-test",
            "greeting_message": "",
            "reveal_interval_ms": 0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def image_attachment() -> Attachment:
    """Provide a small image attachment."""
    return Attachment(filename="photo.png", mime_type="image/png", data="iVBORw0KGgo=")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    The assistant service is recreated for every client so each test
    starts from a fresh conversation.

    Yields:
        TestClient: FastAPI test client.
    """
    import src.services.assistant_service as assistant_module
    from src.main import app

    assistant_module._assistant_service = None
    with TestClient(app) as test_client:
        yield test_client
    assistant_module._assistant_service = None
