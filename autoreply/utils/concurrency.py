"""Concurrency primitives shared by the webhook pipeline.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  The webhook handler uses it to process a
   batch of comments concurrently without flooding the generation and
   delivery services.

2. **call_with_timeout** -- awaits one external call under a deadline and
   converts ``asyncio.TimeoutError`` into the caller's domain error, so a
   slow collaborator becomes an ordinary failure instead of a stuck event.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from autoreply.utils.errors import AutoReplyError
from autoreply.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding concurrency.  Owned by the caller so that each
        worker pool has its own limit.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def call_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float,
    error_factory: Callable[[str], AutoReplyError],
    operation: str,
) -> _T:
    """Await *awaitable* for at most *timeout* seconds.

    Parameters
    ----------
    awaitable:
        The external call (embedding, generation, or delivery).
    timeout:
        Deadline in seconds.  Values ``<= 0`` disable the deadline.
    error_factory:
        Builds the domain error raised on timeout, e.g.
        ``lambda msg: DeliveryError(msg, provider_name="graph_api")``.
    operation:
        Short name used in the log line and error message.

    Raises
    ------
    AutoReplyError
        Whatever *error_factory* returns, when the deadline passes.  The
        pending call is cancelled by ``asyncio.wait_for``.
    """
    if timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        _logger.warning("external_call_timeout", operation=operation, timeout_s=timeout)
        raise error_factory(f"{operation} timed out after {timeout:g}s") from exc
