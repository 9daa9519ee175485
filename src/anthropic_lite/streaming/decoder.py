from __future__ import annotations
import json
import logging
from typing import AsyncIterable, AsyncIterator, Callable, List, Optional

from anthropic_lite.core.cancellation import CancelToken
from anthropic_lite.core.errors import ClassifiedError, ErrorKind, ProviderClientError
from .events import StreamEvent

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
SENTINEL = "[DONE]"

MalformedHook = Callable[[str, Exception], None]


class LineBuffer:
    """
    Reassembles complete lines from text chunks that may split anywhere.
    A line is complete only once its "\\n" has arrived; a trailing "\\r" is dropped.
    """

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> List[str]:
        if not chunk:
            return []
        self._pending += chunk
        if "\n" not in self._pending:
            return []
        *complete, self._pending = self._pending.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in complete]


def _cancelled_error() -> ProviderClientError:
    return ProviderClientError(ClassifiedError(ErrorKind.CANCELLED, "stream was cancelled", None, retryable=False))


class StreamDecoder:
    """
    Turns `data: <json>` lines into StreamEvents.

    State is a pending-line buffer plus a terminal flag set by `data: [DONE]`;
    once finished, nothing more is emitted. One decoder per stream, single consumer.
    Malformed payloads never raise: they are logged with the raw text and
    passed to `on_malformed` if given.
    """

    def __init__(self, on_malformed: Optional[MalformedHook] = None):
        self._buffer = LineBuffer()
        self._on_malformed = on_malformed
        self.finished = False

    def decode_line(self, line: str) -> Optional[StreamEvent]:
        if self.finished or not line.startswith(DATA_PREFIX):
            return None
        content = line[len(DATA_PREFIX):].strip()
        if content == SENTINEL:
            self.finished = True
            return None
        try:
            payload = json.loads(content)
            if not isinstance(payload, dict):
                raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        except ValueError as e:
            _logger.warning("Skipping malformed stream payload: %r (%s)", content, e)
            if self._on_malformed is not None:
                self._on_malformed(content, e)
            return None
        return StreamEvent.from_payload(payload)

    def feed(self, chunk: str) -> List[StreamEvent]:
        """Decode every line completed by `chunk`; stops at the sentinel."""
        events: List[StreamEvent] = []
        for line in self._buffer.feed(chunk):
            if self.finished:
                break
            event = self.decode_line(line)
            if event is not None:
                events.append(event)
        return events

    async def iter_events(
        self, chunks: AsyncIterable[str], cancel: Optional[CancelToken] = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Lazily decode raw text chunks. Cancellation is checked before each chunk
        is pulled and before each decoded event is handed out.
        """
        iterator = chunks.__aiter__()
        while not self.finished:
            if cancel is not None and cancel.cancelled:
                raise _cancelled_error()
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            for event in self.feed(chunk):
                if cancel is not None and cancel.cancelled:
                    raise _cancelled_error()
                yield event
        if not self.finished and self._buffer.pending:
            _logger.debug("Stream ended with an unterminated line; discarded %d chars", len(self._buffer.pending))

    async def iter_lines(
        self, lines: AsyncIterable[str], cancel: Optional[CancelToken] = None
    ) -> AsyncIterator[StreamEvent]:
        """Decode lines already split by an external line reader."""
        iterator = lines.__aiter__()
        while not self.finished:
            if cancel is not None and cancel.cancelled:
                raise _cancelled_error()
            try:
                line = await iterator.__anext__()
            except StopAsyncIteration:
                break
            event = self.decode_line(line)
            if event is not None:
                yield event
