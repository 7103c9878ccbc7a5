"""Batch entry point for webhook deliveries.

:class:`WebhookHandler` parses one payload, then runs every comment event
through the ingestor and the orchestrator on a bounded worker pool.  The
batch always produces a :class:`~autoreply.models.replies.BatchAck`: a
failure inside one event is counted and logged, and never reaches its
siblings or the acknowledgment.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Union

import structlog

from autoreply.models.events import RawEvent, Rejected
from autoreply.models.replies import BatchAck, ReplyOutcome, ReplyStatus
from autoreply.pipeline.event_ingestor import parse_webhook
from autoreply.utils.concurrency import throttled_gather
from autoreply.utils.logging import get_logger

if TYPE_CHECKING:
    from autoreply.pipeline.event_ingestor import EventIngestor
    from autoreply.pipeline.reply_orchestrator import ReplyOrchestrator

_EventResult = Union[ReplyOutcome, Rejected]


class WebhookHandler:
    """Parses, filters, and answers a batch of comment events.

    Parameters
    ----------
    ingestor:
        Filters and persists each parsed event.
    orchestrator:
        Produces and delivers the reply for accepted events.
    max_workers:
        Maximum events processed concurrently for one batch.
    """

    def __init__(
        self,
        ingestor: EventIngestor,
        orchestrator: ReplyOrchestrator,
        max_workers: int = 4,
    ) -> None:
        self._ingestor = ingestor
        self._orchestrator = orchestrator
        self._max_workers = max(1, max_workers)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def handle_events(self, payload: Mapping[str, Any]) -> BatchAck:
        """Process one webhook payload and summarize what happened."""
        raw_events, malformed = parse_webhook(payload)
        rejected: Counter[str] = Counter(r.reason.value for r in malformed)

        semaphore = asyncio.Semaphore(self._max_workers)
        results = await throttled_gather(
            [self._handle_one(raw) for raw in raw_events],
            semaphore,
            return_exceptions=True,
        )

        accepted = sent = failed = skipped = 0
        for raw, result in zip(raw_events, results):
            if isinstance(result, Rejected):
                rejected[result.reason.value] += 1
            elif isinstance(result, ReplyOutcome):
                accepted += 1
                if result.skipped:
                    skipped += 1
                elif result.status is ReplyStatus.SENT:
                    sent += 1
                else:
                    failed += 1
            elif isinstance(result, BaseException):
                failed += 1
                self._logger.error(
                    "webhook_event_failed",
                    external_event_id=raw.external_event_id,
                    error_type=type(result).__name__,
                    error=str(result),
                )

        ack = BatchAck(
            received=len(raw_events) + len(malformed),
            accepted=accepted,
            rejected=dict(rejected),
            sent=sent,
            failed=failed,
            skipped=skipped,
        )
        self._logger.info("webhook_batch_processed", **ack.model_dump())
        return ack

    async def _handle_one(self, raw: RawEvent) -> _EventResult:
        outcome = await self._ingestor.accept(raw)
        if isinstance(outcome, Rejected):
            return outcome
        return await self._orchestrator.process(outcome)
