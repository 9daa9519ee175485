from __future__ import annotations
import asyncio
import json
import logging
import time
import warnings
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Optional, Set

from anthropic_lite.core.cancellation import CancelToken
from anthropic_lite.core.errors import ClassifiedError, ErrorKind, ProviderError, error_for
from anthropic_lite.core.outcome import Failure, Outcome, Success
from anthropic_lite.core.ports import ApiRequest, RawResponse, StreamingBody, TelemetrySink, Transport
from anthropic_lite.streaming.decoder import StreamDecoder
from anthropic_lite.streaming.events import StreamEvent, StreamEventType
from .classifier import TRANSPORT_ERRORS, classify
from .retry_policy import ResiliencePolicy, Stop

_logger = logging.getLogger(__name__)

_CANCELLED = ClassifiedError(ErrorKind.CANCELLED, "request was cancelled", None, retryable=False)


_pending_closes: Set[asyncio.Task] = set()


def _count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def usage_tokens(body: str) -> int:
    """input_tokens + output_tokens from a JSON body's `usage`, 0 when absent."""
    try:
        usage = json.loads(body).get("usage") or {}
        return _count(usage.get("input_tokens")) + _count(usage.get("output_tokens"))
    except (ValueError, AttributeError, TypeError):
        return 0


class EventStream:
    """
    Lazy, single-consumer sequence of StreamEvents over one open response.
    Yields zero or more events, then either ends normally or raises one
    ProviderError. The response is released when the sequence is exhausted,
    fails, or is closed early (`aclose()` / `async with`). A stream dropped
    without either emits a ResourceWarning and is closed on the running loop.
    """

    def __init__(self, body: StreamingBody, closer: AsyncExitStack, decoder: StreamDecoder,
                 *, cancel: Optional[CancelToken] = None,
                 on_finish: Optional[Callable[[Optional[ClassifiedError], int], None]] = None):
        self.status_code = body.status_code
        self._body = body
        self._closer = closer
        self._decoder = decoder
        self._cancel = cancel
        self._on_finish = on_finish
        self._input_tokens = 0
        self._output_tokens = 0
        self._released = False
        self._gen = self._run()

    def __del__(self):
        if getattr(self, "_released", True):
            return
        warnings.warn(f"EventStream for {self.status_code} response was never closed",
                      ResourceWarning, source=self)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._closer.aclose())
        _pending_closes.add(task)
        task.add_done_callback(_pending_closes.discard)

    def __aiter__(self):
        return self

    async def __anext__(self) -> StreamEvent:
        return await self._gen.__anext__()

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._released = True
        await self._gen.aclose()
        # no-op when the generator already released it
        await self._closer.aclose()

    @property
    def tokens(self) -> int:
        return self._input_tokens + self._output_tokens

    def _tally(self, event: StreamEvent) -> None:
        usage = event.usage
        if not usage:
            return
        # output_tokens on message_delta is cumulative; non-integer counts are ignored
        self._input_tokens = max(self._input_tokens, _count(usage.get("input_tokens")))
        self._output_tokens = max(self._output_tokens, _count(usage.get("output_tokens")))

    async def _run(self):
        failure: Optional[ClassifiedError] = None
        try:
            async for event in self._decoder.iter_events(self._body.aiter_text(), self._cancel):
                if event.type in (StreamEventType.MESSAGE_START, StreamEventType.MESSAGE_DELTA):
                    self._tally(event)
                yield event
        except ProviderError as e:
            failure = e.classified
            raise
        except asyncio.CancelledError:
            failure = _CANCELLED
            raise
        except TRANSPORT_ERRORS as e:
            failure = classify(transport_exception=e)
            _logger.error("Stream failed mid-way: %s", failure.message)
            raise error_for(failure) from e
        except Exception as e:
            failure = classify(transport_exception=e)
            _logger.error("Stream failed unexpectedly: %s", failure.message)
            raise error_for(failure) from e
        finally:
            self._released = True
            await self._closer.aclose()
            if self._on_finish is not None:
                self._on_finish(failure, self.tokens)


class RequestExecutor:
    """
    Runs one logical API call against a Transport.
    - execute(): retried per ResiliencePolicy; the same body is replayed each attempt
    - execute_streaming(): one round trip, never retried
    Each call owns its attempt counter and decoder; the executor itself holds
    no per-call state and may be shared across concurrent tasks.
    """

    def __init__(
        self,
        transport: Transport,
        base_url: str,
        policy: Optional[ResiliencePolicy] = None,
        *,
        telemetry: Optional[TelemetrySink] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.policy = policy or ResiliencePolicy()
        self.telemetry = telemetry
        self._sleep = sleep or asyncio.sleep

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def execute_once(self, request: ApiRequest, cancel: Optional[CancelToken] = None) -> Outcome[RawResponse]:
        if cancel is not None and cancel.cancelled:
            return Failure(_CANCELLED)
        try:
            resp = await self.transport.send(request.method, self._url(request.path), request.headers, request.body)
        except asyncio.CancelledError:
            raise
        except TRANSPORT_ERRORS as e:
            return Failure(classify(transport_exception=e))
        if resp.is_success:
            return Success(resp)
        return Failure(classify(resp.status_code, resp.text))

    async def _pause(self, delay: float, cancel: Optional[CancelToken]) -> bool:
        """Sleep between attempts; True if cancelled before or during the wait."""
        if cancel is None:
            await self._sleep(delay)
            return False
        if cancel.cancelled:
            return True
        return await cancel.sleep(delay)

    async def execute(self, request: ApiRequest, *, op: str = "request",
                      cancel: Optional[CancelToken] = None) -> Outcome[RawResponse]:
        start = time.monotonic()
        attempt = 0
        while True:
            outcome = await self.execute_once(request, cancel)
            if isinstance(outcome, Success):
                self._record_success(op, start, usage_tokens(outcome.value.text))
                return outcome

            decision = self.policy.decide(attempt, outcome.error)
            if isinstance(decision, Stop):
                _logger.error("API request failed after %d attempt(s): %s", attempt + 1, outcome.error)
                self._record_failure(op, start, outcome.error)
                return outcome

            _logger.warning("Retry attempt %d after %.0fms due to %s",
                            attempt + 1, decision.delay * 1000, outcome.error)
            if await self._pause(decision.delay, cancel):
                self._record_failure(op, start, _CANCELLED)
                return Failure(_CANCELLED)
            attempt += 1

    async def execute_streaming(self, request: ApiRequest, *, op: str = "stream",
                                cancel: Optional[CancelToken] = None) -> Outcome[EventStream]:
        """
        Open the stream. A failing initial status is classified and returned
        before any event is produced; later failures end the EventStream.
        """
        start = time.monotonic()
        if cancel is not None and cancel.cancelled:
            return Failure(_CANCELLED)

        closer = AsyncExitStack()
        try:
            body = await closer.enter_async_context(
                self.transport.stream(request.method, self._url(request.path), request.headers, request.body)
            )
        except asyncio.CancelledError:
            raise
        except TRANSPORT_ERRORS as e:
            classified = classify(transport_exception=e)
            _logger.error("Stream request failed: %s", classified)
            self._record_failure(op, start, classified)
            return Failure(classified)

        if not 200 <= body.status_code < 300:
            try:
                raw = await body.aread()
            except TRANSPORT_ERRORS:
                raw = b""
            finally:
                await closer.aclose()
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
            classified = classify(body.status_code, text)
            _logger.error("Stream request failed: %s", classified)
            self._record_failure(op, start, classified)
            return Failure(classified)

        def on_finish(failure: Optional[ClassifiedError], tokens: int) -> None:
            if failure is None:
                self._record_success(op, start, tokens)
            else:
                self._record_failure(op, start, failure)

        return Success(EventStream(body, closer, StreamDecoder(), cancel=cancel, on_finish=on_finish))

    def _record_success(self, op: str, start: float, tokens: int) -> None:
        if self.telemetry is not None:
            self.telemetry.record_success(op, time.monotonic() - start, tokens)

    def _record_failure(self, op: str, start: float, classified: ClassifiedError) -> None:
        if self.telemetry is not None:
            self.telemetry.record_failure(op, time.monotonic() - start, classified.kind.value, classified.http_status)
