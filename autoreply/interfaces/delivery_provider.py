"""Abstract base class for outbound reply delivery.

Two channels exist: a direct (private) message to the commenter, and a
public reply in the comment thread.  Which one is used is a policy decision
made by the reply orchestrator, never a fallback chain here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: GraphAPIDeliveryProvider (autoreply/providers/delivery/)
class IDeliveryProvider(ABC):
    """Contract for sending replies through the external platform."""

    @abstractmethod
    async def send_direct(self, channel_token: str, recipient_id: str, text: str) -> dict[str, Any]:
        """Send *text* as a private message to *recipient_id*.

        Returns
        -------
        dict
            The platform's JSON response.

        Raises
        ------
        autoreply.utils.errors.DeliveryError
            On network failure or platform rejection.
        """

    @abstractmethod
    async def send_public(self, channel_token: str, thread_id: str, text: str) -> dict[str, Any]:
        """Post *text* as a public reply in the thread *thread_id*.

        Raises
        ------
        autoreply.utils.errors.DeliveryError
            On network failure or platform rejection.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"graph_api"``."""
