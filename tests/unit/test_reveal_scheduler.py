"""Unit tests for RevealScheduler."""

import asyncio

import pytest

from src.services.reveal_scheduler import RevealScheduler


class TestReveal:
    """Tests for a reveal session running to completion."""

    @pytest.mark.asyncio
    async def test_emits_growing_prefixes_then_completes(self) -> None:
        """Test that every prefix is emitted in order, then the literal text."""
        chunks: list[str] = []
        completed: list[str] = []
        scheduler = RevealScheduler(interval_ms=0)

        handle = scheduler.reveal("abc", chunks.append, completed.append)
        await handle.wait()

        assert chunks == ["a", "ab", "abc"]
        assert completed == ["abc"]
        assert handle.completed is True
        assert handle.index == 3
        assert scheduler.active is None

    @pytest.mark.asyncio
    async def test_empty_text_completes_without_chunks(self) -> None:
        """Test that an empty answer goes straight to completion."""
        chunks: list[str] = []
        completed: list[str] = []
        scheduler = RevealScheduler(interval_ms=0)

        handle = scheduler.reveal("", chunks.append, completed.append)
        await handle.wait()

        assert chunks == []
        assert completed == [""]

    @pytest.mark.asyncio
    async def test_interval_override(self) -> None:
        """Test that a per-call interval overrides the default."""
        completed: list[str] = []
        scheduler = RevealScheduler(interval_ms=10_000)

        handle = scheduler.reveal("hi", lambda _: None, completed.append, interval_ms=0)
        await asyncio.wait_for(handle.wait(), timeout=1)

        assert completed == ["hi"]


class TestCancel:
    """Tests for cancelling a reveal session."""

    @pytest.mark.asyncio
    async def test_cancel_after_ticks_stops_emission(self) -> None:
        """Test that no chunk or completion follows cancel()."""
        chunks: list[str] = []
        completed: list[str] = []
        scheduler = RevealScheduler(interval_ms=0)
        handle = None

        def on_chunk(prefix: str) -> None:
            chunks.append(prefix)
            if len(chunks) == 2:
                handle.cancel()

        handle = scheduler.reveal("abcdef", on_chunk, completed.append)
        await handle.wait()
        await asyncio.sleep(0)

        assert chunks == ["a", "ab"]
        assert completed == []
        assert handle.cancelled is True
        assert handle.index == 2

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self) -> None:
        """Test that a second cancel() is a no-op."""
        scheduler = RevealScheduler(interval_ms=50)
        handle = scheduler.reveal("abc", lambda _: None, lambda _: None)

        assert handle.cancel() is True
        assert handle.cancel() is False
        await handle.wait()

    @pytest.mark.asyncio
    async def test_cancel_after_completion_is_noop(self) -> None:
        """Test that cancelling a finished session changes nothing."""
        scheduler = RevealScheduler(interval_ms=0)
        handle = scheduler.reveal("ab", lambda _: None, lambda _: None)
        await handle.wait()

        assert handle.cancel() is False
        assert handle.completed is True
        assert handle.cancelled is False

    @pytest.mark.asyncio
    async def test_new_reveal_cancels_previous(self) -> None:
        """Test that only one session is active per scheduler."""
        first_chunks: list[str] = []
        first_completed: list[str] = []
        second_completed: list[str] = []
        scheduler = RevealScheduler(interval_ms=0)

        first = scheduler.reveal("x" * 100, first_chunks.append, first_completed.append)
        await asyncio.sleep(0)
        second = scheduler.reveal("yz", lambda _: None, second_completed.append)

        assert first.cancelled is True
        assert scheduler.active is second

        await first.wait()
        await second.wait()

        assert first_completed == []
        assert len(first_chunks) < 100
        assert second_completed == ["yz"]

    @pytest.mark.asyncio
    async def test_scheduler_cancel_without_session(self) -> None:
        """Test that cancelling an idle scheduler returns False."""
        assert RevealScheduler().cancel() is False
