"""Event pipeline: ingest comment events and drive their replies."""

from autoreply.pipeline.event_ingestor import EventIngestor, parse_webhook
from autoreply.pipeline.reply_orchestrator import ReplyOrchestrator
from autoreply.pipeline.webhook_handler import WebhookHandler

__all__ = [
    "EventIngestor",
    "ReplyOrchestrator",
    "WebhookHandler",
    "parse_webhook",
]
