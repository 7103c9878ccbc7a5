"""Per-event reply state machine.

Each accepted event is answered at most once::

    NEW --claim--> PENDING --deliver ok--> SENT
                           \\--any error--> FAILED

The claim is a transactional insert of a ``pending`` Reply Record; a worker
that loses the claim skips the event.  The claimed record is always
finalized, whatever happens in between, and ``FAILED`` is never retried
automatically.

Within one event the steps run strictly in order: retrieve, generate,
select channel, deliver, finalize.  Each external call has its own
deadline, and each failure has a local fallback:

* retrieval failure -> generate with no snippets
* generation failure or timeout -> fixed acknowledgment text
* delivery failure or timeout -> ``FAILED``
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from autoreply.models.events import AcceptedEvent, Channel, InboundEvent, ReplyMode
from autoreply.models.rag import ScoredSnippet
from autoreply.models.replies import ReplyOutcome, ReplyStatus
from autoreply.utils.concurrency import call_with_timeout
from autoreply.utils.errors import (
    AutoReplyError,
    DeliveryError,
    GenerationUnavailableError,
)
from autoreply.utils.logging import event_context, get_logger

if TYPE_CHECKING:
    from autoreply.interfaces.delivery_provider import IDeliveryProvider
    from autoreply.interfaces.event_store import IEventStore
    from autoreply.interfaces.reply_generator import IReplyGenerator
    from autoreply.services.retrieval_service import RetrievalEngine

_DEFAULT_FALLBACK = (
    "Thanks for reaching out! We've received your message and will get back to you shortly."
)


class ReplyOrchestrator:
    """Drives one accepted event from claim to a terminal reply status.

    Parameters
    ----------
    retrieval_engine:
        Grounds the reply in the owner's knowledge.
    reply_generator:
        Writes the reply text.
    delivery_provider:
        Sends the reply through the platform.
    event_store:
        Holds the Reply Record that guards against double replies.
    top_k:
        Number of snippets handed to the generator.
    generation_timeout, delivery_timeout:
        Per-call deadlines in seconds.
    fallback_reply_text:
        Sent when generation fails.
    """

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        reply_generator: IReplyGenerator,
        delivery_provider: IDeliveryProvider,
        event_store: IEventStore,
        top_k: int = 5,
        generation_timeout: float = 20.0,
        delivery_timeout: float = 10.0,
        fallback_reply_text: str = _DEFAULT_FALLBACK,
    ) -> None:
        self._retrieval = retrieval_engine
        self._generator = reply_generator
        self._delivery = delivery_provider
        self._store = event_store
        self._top_k = top_k
        self._generation_timeout = generation_timeout
        self._delivery_timeout = delivery_timeout
        self._fallback_reply_text = fallback_reply_text
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @staticmethod
    def select_channel(channel: Channel, event: InboundEvent) -> ReplyMode:
        """Pick the reply channel for *event*.

        Direct messages need the commenter's id; without one the reply goes
        to the public thread even when the owner prefers direct replies.
        """
        if channel.reply_mode is ReplyMode.DIRECT and event.author_id:
            return ReplyMode.DIRECT
        return ReplyMode.PUBLIC

    async def process(self, accepted: AcceptedEvent) -> ReplyOutcome:
        """Claim, answer, and finalize one accepted event."""
        event = accepted.event
        channel = accepted.channel

        with event_context(event_id=event.id, owner_id=event.owner_id):
            if not await self._store.claim_reply(event.id):
                self._logger.info("reply_skipped_already_claimed")
                return ReplyOutcome(
                    event_id=event.id,
                    external_event_id=event.external_event_id,
                    skipped=True,
                )

            reply_text = self._fallback_reply_text
            used_fallback = True
            mode: ReplyMode | None = None
            status = ReplyStatus.FAILED
            sent_at: datetime | None = None
            try:
                snippets = await self._retrieve(event)
                reply_text, used_fallback = await self._generate(channel, event, snippets)
                mode = self.select_channel(channel, event)
                await self._deliver(channel, event, mode, reply_text)
                status = ReplyStatus.SENT
                sent_at = datetime.now(timezone.utc)
            except DeliveryError as exc:
                self._logger.warning(
                    "reply_delivery_failed",
                    channel=mode.value if mode else None,
                    error=str(exc),
                )
            except Exception:
                self._logger.exception("reply_processing_failed")
            finally:
                await self._store.finalize_reply(event.id, reply_text, status, mode, sent_at)

            self._logger.info(
                "reply_finalized",
                status=status.value,
                channel=mode.value if mode else None,
                used_fallback=used_fallback,
            )
            return ReplyOutcome(
                event_id=event.id,
                external_event_id=event.external_event_id,
                status=status,
                channel=mode,
                used_fallback=used_fallback,
            )

    async def trigger_replies(
        self, owner_id: str, target_id: str | None = None
    ) -> list[ReplyOutcome]:
        """Answer stored events of tracked targets that have no reply yet.

        Events are handled oldest first, one at a time.  Racing a webhook
        delivery for the same event is safe: only one claim wins.
        """
        events = await self._store.list_unreplied_events(owner_id, target_id)
        outcomes: list[ReplyOutcome] = []
        for event in events:
            channel = await self._store.get_channel(event.source_id)
            if channel is None:
                self._logger.warning(
                    "trigger_skipped_unknown_source",
                    event_id=event.id,
                    source_id=event.source_id,
                )
                continue
            outcomes.append(
                await self.process(AcceptedEvent(event=event, channel=channel, first_seen=False))
            )

        self._logger.info(
            "replies_triggered",
            owner_id=owner_id,
            target_id=target_id,
            events=len(events),
            sent=sum(1 for o in outcomes if o.status is ReplyStatus.SENT),
        )
        return outcomes

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _retrieve(self, event: InboundEvent) -> list[ScoredSnippet]:
        try:
            return await self._retrieval.search(event.owner_id, event.text, self._top_k)
        except AutoReplyError as exc:
            self._logger.warning("reply_retrieval_failed", error=str(exc))
            return []

    async def _generate(
        self,
        channel: Channel,
        event: InboundEvent,
        snippets: list[ScoredSnippet],
    ) -> tuple[str, bool]:
        """Return the reply text and whether the fallback was used."""
        try:
            text = await call_with_timeout(
                self._generator.generate(channel.name or "our business", event.text, snippets),
                self._generation_timeout,
                lambda msg: GenerationUnavailableError(
                    message=msg, provider_name=self._generator.get_provider_name()
                ),
                "reply_generation",
            )
        except GenerationUnavailableError as exc:
            self._logger.warning("reply_generation_fallback", error=str(exc))
            return self._fallback_reply_text, True
        if not text or not text.strip():
            self._logger.warning("reply_generation_empty")
            return self._fallback_reply_text, True
        return text.strip(), False

    async def _deliver(
        self,
        channel: Channel,
        event: InboundEvent,
        mode: ReplyMode,
        text: str,
    ) -> None:
        if mode is ReplyMode.DIRECT:
            call = self._delivery.send_direct(channel.access_token, event.author_id or "", text)
        else:
            call = self._delivery.send_public(channel.access_token, event.external_event_id, text)
        await call_with_timeout(
            call,
            self._delivery_timeout,
            lambda msg: DeliveryError(message=msg, provider_name=self._delivery.get_provider_name()),
            f"{mode.value}_delivery",
        )
