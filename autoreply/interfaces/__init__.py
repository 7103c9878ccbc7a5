"""Public interface definitions for storage and external collaborators.

Business logic depends only on these abstract base classes; concrete
adapters live in ``autoreply/providers/`` and are wired in
``autoreply/main.py``.  Tests inject fakes or ``MagicMock(spec=...)``.

    Interface              ->  Concrete implementation
    ------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    IReplyGenerator        ->  OpenAIReplyGenerator
    IDeliveryProvider      ->  GraphAPIDeliveryProvider
    IVectorStoreProvider   ->  SQLiteVectorStore
    IEventStore            ->  SQLiteEventStore
"""

from autoreply.interfaces.delivery_provider import IDeliveryProvider
from autoreply.interfaces.embedding_provider import IEmbeddingProvider
from autoreply.interfaces.event_store import IEventStore
from autoreply.interfaces.reply_generator import IReplyGenerator
from autoreply.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDeliveryProvider",
    "IEmbeddingProvider",
    "IEventStore",
    "IReplyGenerator",
    "IVectorStoreProvider",
]
