from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx

from .capability import RoutingSettings


@dataclass(slots=True)
class DirectResponse:
    response: httpx.Response

    @property
    def ok(self) -> bool:
        return self.response.is_success

    def json(self) -> Any:
        return self.response.json()


class DirectRoutingClient:
    """Routing client that sends requests straight to the target, bypassing any mixnet.

    It is ready immediately and never reports latency statistics, so it measures a
    no-mixnet baseline where only ``fetch_dur`` carries information.
    """

    def __init__(
        self,
        client_id: str,
        settings: Optional[RoutingSettings] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self.settings = settings or RoutingSettings()
        self.on_latency_statistics: Optional[Callable[[Any], None]] = None
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def is_ready(self, timeout_ms: int) -> bool:
        return not self._client.is_closed

    async def fetch(self, url: str, request: Mapping[str, Any]) -> DirectResponse:
        response = await self._client.request(
            request.get("method", "GET"),
            url,
            content=request.get("body"),
            headers=dict(request.get("headers") or {}),
        )
        return DirectResponse(response)

    async def aclose(self) -> None:
        await self._client.aclose()
