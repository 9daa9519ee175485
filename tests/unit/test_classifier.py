# tests/unit/test_classifier.py

from __future__ import annotations
import asyncio
import sys
from pathlib import Path

import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from anthropic_lite.core.errors import ErrorKind
from anthropic_lite.resilience.classifier import classify


def envelope(etype: str, message: str) -> str:
    return '{"type": "error", "error": {"type": "%s", "message": "%s"}}' % (etype, message)


def test_authentication_envelope():
    err = classify(401, '{"error":{"type":"authentication_error","message":"bad key"}}')
    assert err.kind is ErrorKind.AUTHENTICATION
    assert err.message == "bad key"
    assert err.http_status == 401
    assert err.retryable is False


@pytest.mark.parametrize(
    "etype,code,kind,retryable",
    [
        ("rate_limit_error", 429, ErrorKind.RATE_LIMITED, True),
        ("invalid_request_error", 400, ErrorKind.INVALID_REQUEST, False),
        ("overloaded_error", 529, ErrorKind.SERVER_ERROR, True),
        ("something_new", 503, ErrorKind.SERVER_ERROR, True),
        ("something_new", 404, ErrorKind.INVALID_REQUEST, False),
        ("something_new", 408, ErrorKind.NETWORK_FAILURE, True),
    ],
)
def test_envelope_type_mapping(etype, code, kind, retryable):
    err = classify(code, envelope(etype, "nope"))
    assert err.kind is kind
    assert err.retryable is retryable
    assert err.message == "nope"


def test_envelope_without_message_synthesizes_one():
    err = classify(500, '{"error": {"type": "api_error"}}')
    assert err.kind is ErrorKind.SERVER_ERROR
    assert err.message == "request failed with status 500"


def test_json_without_error_object_uses_status():
    err = classify(429, '{"detail": "slow down"}')
    assert err.kind is ErrorKind.RATE_LIMITED
    assert err.retryable is True


def test_malformed_body_is_parse_failure_but_status_decides_retry():
    err = classify(502, "<html>Bad Gateway</html>")
    assert err.kind is ErrorKind.PARSE_FAILURE
    assert err.retryable is True
    assert "502" in err.message and "Bad Gateway" in err.message

    err = classify(400, "not json")
    assert err.kind is ErrorKind.PARSE_FAILURE
    assert err.retryable is False


def test_absent_body():
    err = classify(503, None)
    assert err.kind is ErrorKind.PARSE_FAILURE
    assert err.message == "request failed with status 503"
    assert err.retryable is True


def test_cancellation_is_not_retryable():
    err = classify(transport_exception=asyncio.CancelledError())
    assert err.kind is ErrorKind.CANCELLED
    assert err.retryable is False
    assert err.http_status is None


@pytest.mark.parametrize("exc", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow"), ConnectionResetError()])
def test_transport_failures_are_network_failures(exc):
    err = classify(transport_exception=exc)
    assert err.kind is ErrorKind.NETWORK_FAILURE
    assert err.retryable is True


def test_unexpected_exception_is_unknown():
    err = classify(transport_exception=ValueError("bug"))
    assert err.kind is ErrorKind.UNKNOWN
    assert err.retryable is False
