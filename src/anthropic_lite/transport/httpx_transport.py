from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

import httpx

from anthropic_lite.core.ports import RawResponse


class HttpxTransport:
    """
    Transport over httpx.AsyncClient. A client passed in stays owned by the
    caller; otherwise one is created here and closed by aclose(). `timeout`
    bounds each phase of a request separately, so a slow stream that keeps
    delivering chunks is not cut off.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *, timeout: float = 100.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def send(self, method: str, url: str, headers: Mapping[str, str], body: Optional[str]) -> RawResponse:
        resp = await self.client.request(method, url, headers=dict(headers), content=body)
        return RawResponse(status_code=resp.status_code, text=resp.text, headers=dict(resp.headers))

    @asynccontextmanager
    async def stream(
        self, method: str, url: str, headers: Mapping[str, str], body: Optional[str]
    ) -> AsyncIterator[httpx.Response]:
        async with self.client.stream(method, url, headers=dict(headers), content=body) as resp:
            yield resp

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
