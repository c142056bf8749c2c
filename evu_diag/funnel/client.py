# evu_diag/funnel/client.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx


HEADERS = {
    "Accept": "application/json, text/html",
    "User-Agent": "evu-diag/0.1",
}


def response_body(resp: httpx.Response) -> Any:
    """JSON body when there is one, otherwise the raw text."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class FunnelClient:
    """Async JSON client bound to one funnel API base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=HEADERS,
            transport=transport,
        )

    async def __aenter__(self) -> "FunnelClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_json(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self._client.post(path, json=payload)

    async def get(self, path: str) -> httpx.Response:
        return await self._client.get(path)


def tariff_list(body: Any) -> Optional[List[Any]]:
    """Tariffs from a pricing response: ``daten`` as a list or ``daten.tarife``.

    ``None`` when the body has neither shape.
    """
    if not isinstance(body, dict):
        return None
    daten = body.get("daten")
    if isinstance(daten, list):
        return daten
    if isinstance(daten, dict) and isinstance(daten.get("tarife"), list):
        return daten["tarife"]
    return None
