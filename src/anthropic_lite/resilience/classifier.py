from __future__ import annotations
import asyncio
import json
from typing import Optional

import httpx

from anthropic_lite.core.errors import ClassifiedError, ErrorKind, is_retryable_kind, is_retryable_status

# Exceptions treated as transport-level failures (timeouts, resets, refused
# connections, undecodable bodies, redirect loops).
TRANSPORT_ERRORS = (httpx.RequestError, asyncio.TimeoutError, OSError)

_TYPE_TO_KIND = {
    "authentication_error": ErrorKind.AUTHENTICATION,
    "permission_error": ErrorKind.AUTHENTICATION,
    "rate_limit_error": ErrorKind.RATE_LIMITED,
    "invalid_request_error": ErrorKind.INVALID_REQUEST,
    "not_found_error": ErrorKind.INVALID_REQUEST,
    "api_error": ErrorKind.SERVER_ERROR,
    "overloaded_error": ErrorKind.SERVER_ERROR,
}


def _kind_for_status(status: Optional[int]) -> ErrorKind:
    if status is None:
        return ErrorKind.UNKNOWN
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status == 408:
        return ErrorKind.NETWORK_FAILURE
    if 500 <= status <= 599:
        return ErrorKind.SERVER_ERROR
    if 400 <= status < 500:
        return ErrorKind.INVALID_REQUEST
    return ErrorKind.UNKNOWN


def _parse_envelope(body: Optional[str]):
    """
    Returns (type, message) from {"error": {"type": ..., "message": ...}},
    or None when the body is absent or not JSON at all.
    """
    if not body or not body.strip():
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if not isinstance(err, dict):
        return (None, None)
    etype = err.get("type")
    msg = err.get("message")
    return (etype if isinstance(etype, str) else None, msg if isinstance(msg, str) and msg else None)


def is_cancellation(exc: BaseException) -> bool:
    return isinstance(exc, asyncio.CancelledError)


def classify(
    status: Optional[int] = None,
    body: Optional[str] = None,
    transport_exception: Optional[BaseException] = None,
) -> ClassifiedError:
    """
    Map a failure to a ClassifiedError.
    - transport exception: cancellation -> Cancelled, otherwise NetworkFailure
    - HTTP status + body: error envelope drives the kind; a body that is not
      JSON yields ParseFailure, retryability still follows the status
    """
    if transport_exception is not None:
        if is_cancellation(transport_exception):
            return ClassifiedError(ErrorKind.CANCELLED, "request was cancelled", None, retryable=False)
        if isinstance(transport_exception, TRANSPORT_ERRORS):
            detail = str(transport_exception) or type(transport_exception).__name__
            return ClassifiedError(ErrorKind.NETWORK_FAILURE, f"transport failure: {detail}", None, retryable=True)
        detail = str(transport_exception) or type(transport_exception).__name__
        return ClassifiedError(ErrorKind.UNKNOWN, detail, None, retryable=False)

    fallback = f"request failed with status {status}"
    envelope = _parse_envelope(body)

    if envelope is None:
        message = f"{fallback}: {body.strip()}" if body and body.strip() else fallback
        return ClassifiedError(ErrorKind.PARSE_FAILURE, message, status, retryable=is_retryable_status(status))

    etype, emsg = envelope
    kind = _TYPE_TO_KIND.get(etype) if etype else None
    if kind is None:
        kind = _kind_for_status(status)
    return ClassifiedError(kind, emsg or fallback, status, retryable=is_retryable_kind(kind))
