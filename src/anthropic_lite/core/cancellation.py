from __future__ import annotations
import asyncio


class CancelToken:
    """
    Cooperative cancellation flag shared between a caller and one in-flight call.
    The executor checks it before each transport call, around retry sleeps and
    before each stream chunk is consumed.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, delay: float) -> bool:
        """
        Wait up to `delay` seconds. Returns True if the token was cancelled
        before the delay elapsed.
        """
        if self._event.is_set():
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
