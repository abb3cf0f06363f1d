"""Async OpenAI-compatible client with timing, opt-in retry and metrics."""

import asyncio
import logging
import time
from collections import deque
from functools import lru_cache
from typing import Any

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import get_settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)

# Backoff between attempts when upstream_max_attempts > 1
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 10

# Latency thresholds for logging (milliseconds)
SLOW_CALL_THRESHOLD_MS = 2000
VERY_SLOW_CALL_THRESHOLD_MS = 5000


class OpenAIMetrics:
    """Rolling record of upstream calls, reported by /health/metrics."""

    def __init__(self, max_samples: int = 500):
        self._samples: deque[dict[str, Any]] = deque(maxlen=max_samples)
        self._totals = {"calls": 0, "errors": 0, "retries": 0}

    def record_call(
        self,
        operation: str,
        latency_ms: float,
        model: str,
        tokens_used: int | None = None,
        error: str | None = None,
        retries: int = 0,
    ) -> None:
        """Record one upstream call (all its attempts)."""
        self._totals["calls"] += 1
        self._totals["errors"] += 1 if error else 0
        self._totals["retries"] += retries
        self._samples.append(
            {
                "operation": operation,
                "model": model,
                "latency_ms": round(latency_ms, 2),
                "tokens_used": tokens_used,
                "error": error,
            }
        )

    def get_stats(self) -> dict[str, Any]:
        """Lifetime totals plus latency and error rate over the recent window."""
        stats: dict[str, Any] = {
            "total_calls": self._totals["calls"],
            "total_errors": self._totals["errors"],
            "total_retries": self._totals["retries"],
            "recent_samples": len(self._samples),
            "error_rate": 0,
            "avg_latency_ms": 0,
            "p95_latency_ms": 0,
        }
        if not self._samples:
            return stats

        latencies = sorted(s["latency_ms"] for s in self._samples)
        failed = sum(1 for s in self._samples if s["error"])
        stats["error_rate"] = round(failed / len(latencies) * 100, 2)
        stats["avg_latency_ms"] = round(sum(latencies) / len(latencies), 2)
        stats["p95_latency_ms"] = latencies[min(int(len(latencies) * 0.95), len(latencies) - 1)]
        return stats


_openai_metrics: OpenAIMetrics | None = None


def get_openai_metrics() -> OpenAIMetrics:
    """Get or create the global metrics instance."""
    global _openai_metrics
    if _openai_metrics is None:
        _openai_metrics = OpenAIMetrics()
    return _openai_metrics


class TimedAsyncOpenAIClient:
    """AsyncOpenAI wrapper adding latency logging, metrics and a retry policy.

    Retries are off by default (``upstream_max_attempts=1``); operators can
    opt in for transient connection, timeout and rate-limit errors.
    """

    def __init__(self, client: AsyncOpenAI, max_attempts: int = 1):
        self._client = client
        self._metrics = get_openai_metrics()
        self._max_attempts = max_attempts

    @property
    def chat(self) -> "TimedChatCompletions":
        """Get the timed chat completions interface."""
        return TimedChatCompletions(self._client.chat.completions, self._metrics, self._max_attempts)

    # Pass through other attributes to the underlying client
    def __getattr__(self, name: str) -> Any:
        return getattr(self._client, name)


class TimedChatCompletions:
    """Chat completions with timing and optional retry."""

    def __init__(self, completions: Any, metrics: OpenAIMetrics, max_attempts: int = 1):
        self._completions = completions
        self._metrics = metrics
        self._max_attempts = max_attempts

    async def create(self, **kwargs: Any) -> Any:
        """Create a chat completion.

        Args:
            **kwargs: Arguments to pass to the chat completions API.

        Returns:
            The chat completion response.
        """
        model = kwargs.get("model", "unknown")
        start_time = time.perf_counter()
        attempts = 0
        error_msg = None
        tokens_used = None
        cancelled = False

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
                reraise=True,
            ):
                with attempt:
                    attempts += 1
                    response = await self._completions.create(**kwargs)

            if getattr(response, "usage", None):
                tokens_used = response.usage.total_tokens

            return response

        except asyncio.CancelledError:
            cancelled = True
            raise

        except Exception as e:
            error_msg = f"{type(e).__name__}: {str(e)}"
            logger.error("Chat completion failed after %d attempt(s): %s", attempts, error_msg)
            raise

        finally:
            latency_ms = (time.perf_counter() - start_time) * 1000

            self._metrics.record_call(
                operation="chat.completions.create",
                latency_ms=latency_ms,
                model=model,
                tokens_used=tokens_used,
                error=error_msg,
                retries=max(attempts - 1, 0),
            )

            log_msg = (
                f"Chat completion: model={model}, "
                f"latency={latency_ms:.2f}ms, tokens={tokens_used or 'N/A'}"
            )

            if error_msg:
                logger.error(log_msg + f", error={error_msg}")
            elif cancelled:
                logger.info(log_msg + ", cancelled")
            elif latency_ms > VERY_SLOW_CALL_THRESHOLD_MS:
                logger.warning(f"VERY SLOW upstream call: {log_msg}")
            elif latency_ms > SLOW_CALL_THRESHOLD_MS:
                logger.warning(f"SLOW upstream call: {log_msg}")
            else:
                logger.info(log_msg)


@lru_cache
def get_openai_client() -> TimedAsyncOpenAIClient:
    """Get cached client singleton with timing and metrics.

    Returns:
        TimedAsyncOpenAIClient: Client for the configured endpoint.
    """
    settings = get_settings()
    raw_client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        max_retries=0,
    )
    return TimedAsyncOpenAIClient(raw_client, max_attempts=settings.upstream_max_attempts)
