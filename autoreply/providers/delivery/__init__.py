"""Reply delivery providers."""

from autoreply.providers.delivery.graph_api_delivery_provider import GraphAPIDeliveryProvider

__all__ = ["GraphAPIDeliveryProvider"]
