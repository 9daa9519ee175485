from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Dict, Mapping, Optional, Protocol


@dataclass(frozen=True)
class ApiRequest:
    """
    An already-built request. `body` is serialized JSON text and is replayed
    verbatim on every attempt; idempotency is the caller's concern.
    """
    method: str
    path: str
    body: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class StreamingBody(Protocol):
    """
    Open streaming response. httpx.Response satisfies this as-is.
    """

    status_code: int

    async def aread(self) -> bytes:
        ...

    def aiter_text(self) -> AsyncIterator[str]:
        """
        Yields decoded text chunks as they arrive; chunks are not line-aligned.
        """
        ...


class Transport(Protocol):
    """
    Interface the core uses to talk HTTP. Pooling, TLS and DNS live behind it.
    """

    async def send(self, method: str, url: str, headers: Mapping[str, str], body: Optional[str]) -> RawResponse:
        ...

    def stream(
        self, method: str, url: str, headers: Mapping[str, str], body: Optional[str]
    ) -> AsyncContextManager[StreamingBody]:
        ...


class TelemetrySink(Protocol):
    def record_success(self, op: str, duration: float, tokens: int = 0) -> None:
        ...

    def record_failure(self, op: str, duration: float, kind: str, status: Optional[int] = None) -> None:
        ...


JsonObject = Dict[str, Any]
