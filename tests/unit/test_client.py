# tests/unit/test_client.py

from __future__ import annotations
import json
import sys
from pathlib import Path

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fakes import FakeStreamBody, FakeTransport, RecordingSink, RecordingSleep, ok, status
from anthropic_lite.client import AnthropicClient, message_text
from anthropic_lite.core.beta import BetaFeatures
from anthropic_lite.core.errors import ErrorKind
from anthropic_lite.core.outcome import Failure, Success
from anthropic_lite.options import ClientOptions
from anthropic_lite.resilience.retry_policy import ResiliencePolicy

KEY = "sk-ant-REDACTED"
MESSAGE = {
    "id": "msg_1",
    "type": "message",
    "content": [{"type": "text", "text": "Hello"}, {"type": "text", "text": " world"}],
    "usage": {"input_tokens": 5, "output_tokens": 2},
}


def make_client(transport, **opts):
    options = ClientOptions(api_key=KEY, base_url="https://api.example.test", **opts)
    return AnthropicClient(options, transport=transport, sleep=RecordingSleep())


@pytest.mark.asyncio
async def test_create_message_sends_headers_and_body():
    t = FakeTransport([ok(json.dumps(MESSAGE))])
    client = make_client(t, user_agent="tests/1.0")
    out = await client.create_message({"model": "m", "max_tokens": 10, "system": None,
                                       "messages": [{"role": "user", "content": "hi"}]})
    assert isinstance(out, Success)
    assert message_text(out.value) == "Hello world"

    method, url, headers, body = t.calls[0]
    assert (method, url) == ("POST", "https://api.example.test/v1/messages")
    assert headers["x-api-key"] == KEY
    assert headers["anthropic-version"] == "2023-06-01"
    assert headers["accept"] == "application/json"
    assert headers["user-agent"] == "tests/1.0"
    assert "anthropic-beta" not in headers
    sent = json.loads(body)
    assert sent["stream"] is False
    assert "system" not in sent


@pytest.mark.asyncio
async def test_beta_headers_per_feature():
    t = FakeTransport([ok(json.dumps(MESSAGE))])
    client = make_client(t)
    await client.create_message_with_tools({"model": "m", "max_tokens": 10, "messages": []},
                                           [{"name": "get_weather", "input_schema": {"type": "object"}}])
    await client.create_message_with_caching({"model": "m", "max_tokens": 10, "messages": []})
    await client.create_message_batch([{"custom_id": "a", "params": {}}])
    await client.get_message_batch("msgbatch_1")

    betas = [c[2]["anthropic-beta"] for c in t.calls]
    assert betas == [BetaFeatures.TOOLS, BetaFeatures.PROMPT_CACHING,
                     BetaFeatures.MESSAGE_BATCHES, BetaFeatures.MESSAGE_BATCHES]
    assert json.loads(t.calls[0][3])["tools"][0]["name"] == "get_weather"
    assert json.loads(t.calls[2][3]) == {"requests": [{"custom_id": "a", "params": {}}]}
    assert t.calls[3][0] == "GET" and t.calls[3][1].endswith("/v1/messages/batches/msgbatch_1")
    assert t.calls[3][3] is None


@pytest.mark.asyncio
async def test_get_message_batch_rejects_blank_id():
    client = make_client(FakeTransport([ok()]))
    with pytest.raises(ValueError):
        await client.get_message_batch("  ")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["", "   ", "{oops", "[1,2]"])
async def test_malformed_success_body_is_parse_failure(body):
    client = make_client(FakeTransport([ok(body)]))
    out = await client.create_message({"model": "m", "max_tokens": 1, "messages": []})
    assert isinstance(out, Failure)
    assert out.error.kind is ErrorKind.PARSE_FAILURE
    assert out.error.http_status == 200


@pytest.mark.asyncio
async def test_retries_use_configured_max_retries():
    t = FakeTransport([status(500)])
    client = make_client(t, max_retries=2)
    out = await client.create_completion({"model": "claude-2", "prompt": "\n\nHuman: hi\n\nAssistant:"})
    assert isinstance(out, Failure)
    assert len(t.calls) == 3
    assert t.calls[0][1].endswith("/v1/complete")


@pytest.mark.asyncio
async def test_unwrap_raises_provider_error():
    client = make_client(FakeTransport([status(401, '{"error":{"type":"authentication_error","message":"bad key"}}')]))
    out = await client.create_message({"model": "m", "max_tokens": 1, "messages": []})
    with pytest.raises(Exception) as ei:
        out.unwrap()
    assert ei.value.classified.kind is ErrorKind.AUTHENTICATION


@pytest.mark.asyncio
async def test_stream_message_marks_stream_true():
    body = FakeStreamBody(200, ['data: {"type":"content_block_delta","delta":{"text":"Hi"}}\n', "data: [DONE]\n"])
    t = FakeTransport(stream_body=body)
    client = make_client(t)
    out = await client.stream_message({"model": "m", "max_tokens": 1, "messages": []})
    assert json.loads(t.calls[0][3])["stream"] is True
    text = "".join([e.text async for e in out.value])
    assert text == "Hi"


@pytest.mark.asyncio
async def test_telemetry_can_be_disabled():
    sink = RecordingSink()
    options = ClientOptions(api_key=KEY, enable_telemetry=False)
    client = AnthropicClient(options, transport=FakeTransport([ok(json.dumps(MESSAGE))]), telemetry=sink)
    await client.create_message({"model": "m", "max_tokens": 1, "messages": []})
    assert sink.successes == []

    sink2 = RecordingSink()
    client2 = AnthropicClient(ClientOptions(api_key=KEY), transport=FakeTransport([ok(json.dumps(MESSAGE))]),
                              telemetry=sink2)
    await client2.create_message({"model": "m", "max_tokens": 1, "messages": []})
    assert sink2.successes == [("messages", 7)]


@pytest.mark.asyncio
async def test_policy_and_sleep_are_passed_to_executor():
    sleep = RecordingSleep()
    policy = ResiliencePolicy(max_retries=1, rand=lambda: 0.0)
    t = FakeTransport([status(503), ok(json.dumps(MESSAGE))])
    client = AnthropicClient(ClientOptions(api_key=KEY, max_retries=5), transport=t, policy=policy, sleep=sleep)
    assert client.executor.policy is policy
    out = await client.create_message({"model": "m", "max_tokens": 1, "messages": []})
    assert isinstance(out, Success)
    assert sleep.delays == [1.0]
