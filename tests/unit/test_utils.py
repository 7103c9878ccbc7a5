"""Unit tests for the error hierarchy, concurrency helpers, and logging context."""

from __future__ import annotations

import asyncio

import pytest
import structlog

from autoreply.utils.concurrency import call_with_timeout, throttled_gather
from autoreply.utils.errors import (
    AutoReplyError,
    DeliveryError,
    GenerationUnavailableError,
    ResourceNotFoundError,
)
from autoreply.utils.logging import event_context


class TestErrors:
    def test_str_includes_provider(self) -> None:
        err = DeliveryError(message="HTTP 400: bad token", provider_name="graph_api")
        assert str(err) == "[graph_api] HTTP 400: bad token"
        assert err.message == "HTTP 400: bad token"

    def test_str_without_provider(self) -> None:
        assert str(ResourceNotFoundError()) == "Resource not found"

    def test_hierarchy(self) -> None:
        assert issubclass(GenerationUnavailableError, AutoReplyError)
        with pytest.raises(AutoReplyError):
            raise DeliveryError()


class TestCallWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        async def _fast() -> str:
            return "ok"

        assert await call_with_timeout(_fast(), 1.0, DeliveryError, "op") == "ok"

    @pytest.mark.asyncio
    async def test_timeout_uses_error_factory(self) -> None:
        async def _slow() -> None:
            await asyncio.sleep(5)

        with pytest.raises(GenerationUnavailableError, match="generate timed out after 0.05s"):
            await call_with_timeout(
                _slow(), 0.05, lambda msg: GenerationUnavailableError(message=msg), "generate"
            )

    @pytest.mark.asyncio
    async def test_non_positive_timeout_disables_deadline(self) -> None:
        async def _short() -> int:
            await asyncio.sleep(0.01)
            return 7

        assert await call_with_timeout(_short(), 0, DeliveryError, "op") == 7

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self) -> None:
        async def _broken() -> None:
            raise ValueError("nope")

        with pytest.raises(ValueError):
            await call_with_timeout(_broken(), 1.0, DeliveryError, "op")


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_preserves_order_and_returns_exceptions(self) -> None:
        async def _job(i: int) -> int:
            if i == 1:
                raise RuntimeError("job 1")
            await asyncio.sleep(0.01 * (3 - i))
            return i

        results = await throttled_gather([_job(i) for i in range(3)], asyncio.Semaphore(2))

        assert results[0] == 0
        assert isinstance(results[1], RuntimeError)
        assert results[2] == 2

    @pytest.mark.asyncio
    async def test_respects_limit(self) -> None:
        active = 0
        peak = 0

        async def _job() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await throttled_gather([_job() for _ in range(8)], asyncio.Semaphore(3))
        assert peak == 3


class TestEventContext:
    def test_binds_and_clears(self) -> None:
        with event_context(event_id=7, owner_id="owner-1"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["event_id"] == 7
            assert bound["owner_id"] == "owner-1"
        assert "event_id" not in structlog.contextvars.get_contextvars()
