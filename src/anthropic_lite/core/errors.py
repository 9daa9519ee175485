from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"
    NETWORK_FAILURE = "network_failure"
    CANCELLED = "cancelled"
    PARSE_FAILURE = "parse_failure"
    UNKNOWN = "unknown"


# Single retry table shared by the classifier and the retry policy.
RETRYABLE_STATUSES = frozenset({408, 429})
RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR, ErrorKind.NETWORK_FAILURE})
NEVER_RETRY_KINDS = frozenset({ErrorKind.AUTHENTICATION, ErrorKind.INVALID_REQUEST, ErrorKind.CANCELLED})


def is_retryable_status(status: Optional[int]) -> bool:
    if status is None:
        return False
    return status in RETRYABLE_STATUSES or 500 <= status <= 599


def is_retryable_kind(kind: ErrorKind) -> bool:
    return kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class ClassifiedError:
    """
    Structured view of a failed call: a stable kind, a readable message and,
    when the server answered, the HTTP status.
    """
    kind: ErrorKind
    message: str
    http_status: Optional[int] = None
    retryable: bool = False

    def __str__(self) -> str:
        if self.http_status is not None:
            return f"{self.kind.value} ({self.http_status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class ProviderError(Exception):
    """Base class for provider-level failures. Always carries a ClassifiedError."""

    def __init__(self, classified: ClassifiedError):
        super().__init__(str(classified))
        self.classified = classified

    @property
    def kind(self) -> ErrorKind:
        return self.classified.kind

    @property
    def status_code(self) -> Optional[int]:
        return self.classified.http_status


class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (invalid request, auth, cancelled, bad
    payload). The fix is change input/config, not retry.
    """


class ProviderTransientError(ProviderError):
    """
    Retryable: rate limits, timeouts, network hiccups, 5xx, etc.
    """


def error_for(classified: ClassifiedError) -> ProviderError:
    if classified.retryable:
        return ProviderTransientError(classified)
    return ProviderClientError(classified)
