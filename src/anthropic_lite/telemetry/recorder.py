from __future__ import annotations
import logging
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

_logger = logging.getLogger(__name__)


class TelemetryRecorder:
    """
    In-process request metrics. Created and injected by the caller; there is
    no module-level instance.
    Counters are keyed by (operation, status) where status is "success" or the error kind.
    """

    def __init__(self, model: Optional[str] = None):
        self.model = model or "unknown"
        self.requests: Counter = Counter()
        self.errors: Counter = Counter()
        self.tokens: Counter = Counter()
        self.durations: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def record_success(self, op: str, duration: float, tokens: int = 0) -> None:
        with self._lock:
            self.requests[(op, "success")] += 1
            self.durations.setdefault(op, []).append(duration)
            if tokens > 0:
                self.tokens[op] += tokens
        _logger.debug("API request completed: %s with %s in %.0fms (%d tokens)",
                      op, self.model, duration * 1000, tokens)

    def record_failure(self, op: str, duration: float, kind: str, status: Optional[int] = None) -> None:
        with self._lock:
            self.requests[(op, kind)] += 1
            self.errors[(op, kind)] += 1
            self.durations.setdefault(op, []).append(duration)
        _logger.warning("API request failed: %s with %s - %s (%s)", op, self.model, kind, status)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "requests_total": sum(self.requests.values()),
                "errors_total": sum(self.errors.values()),
                "tokens_total": sum(self.tokens.values()),
                "by_operation": {
                    op: {"count": len(samples), "avg_duration": sum(samples) / len(samples)}
                    for op, samples in self.durations.items()
                },
            }

    def error_counts(self) -> Dict[Tuple[str, str], int]:
        with self._lock:
            return dict(self.errors)
