"""Graph API delivery adapter.

Sends replies through the platform's HTTP API using the page access token
stored on the channel:

* direct message: ``POST {base}/me/messages`` with ``recipient.id``
* public reply:   ``POST {base}/{comment_id}/comments`` with ``message``

Uses an injected ``httpx.AsyncClient`` for connection pooling and
testability.  Non-2xx responses and transport failures both surface as
:class:`~autoreply.utils.errors.DeliveryError`; nothing is retried here.
"""

from __future__ import annotations

from typing import Any

import httpx

from autoreply.interfaces.delivery_provider import IDeliveryProvider
from autoreply.utils.errors import DeliveryError
from autoreply.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://graph.facebook.com/v21.0"


class GraphAPIDeliveryProvider(IDeliveryProvider):
    """Delivers replies via the Graph API.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``; its lifecycle belongs to the caller.
    base_url:
        Versioned Graph API root, without a trailing slash.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = _DEFAULT_BASE_URL) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._logger = get_logger(__name__)

    async def send_direct(self, channel_token: str, recipient_id: str, text: str) -> dict[str, Any]:
        payload = {"recipient": {"id": recipient_id}, "message": {"text": text}}
        data = await self._post("/me/messages", channel_token, payload)
        self._logger.info("direct_reply_sent", recipient_id=recipient_id)
        return data

    async def send_public(self, channel_token: str, thread_id: str, text: str) -> dict[str, Any]:
        data = await self._post(f"/{thread_id}/comments", channel_token, {"message": text})
        self._logger.info("public_reply_sent", thread_id=thread_id)
        return data

    def get_provider_name(self) -> str:
        return "graph_api"

    async def _post(self, path: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.post(url, params={"access_token": token}, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_message(exc.response)
            self._logger.warning(
                "graph_api_rejected",
                path=path,
                status=exc.response.status_code,
                detail=detail,
            )
            raise DeliveryError(
                message=f"HTTP {exc.response.status_code}: {detail}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            self._logger.warning("graph_api_unreachable", path=path, error=str(exc))
            raise DeliveryError(
                message=f"Request to {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}


def _error_message(response: httpx.Response) -> str:
    """Extract ``error.message`` from a Graph API error body, else the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:200]
