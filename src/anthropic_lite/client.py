from __future__ import annotations
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from anthropic_lite.core.beta import BetaFeatures
from anthropic_lite.core.cancellation import CancelToken
from anthropic_lite.core.errors import ClassifiedError, ErrorKind
from anthropic_lite.core.outcome import Failure, Outcome, Success
from anthropic_lite.core.ports import ApiRequest, JsonObject, RawResponse, TelemetrySink, Transport
from anthropic_lite.options import ClientOptions
from anthropic_lite.resilience.executor import EventStream, RequestExecutor
from anthropic_lite.resilience.retry_policy import ResiliencePolicy
from anthropic_lite.transport.httpx_transport import HttpxTransport

_logger = logging.getLogger(__name__)

MESSAGES_PATH = "/v1/messages"
BATCHES_PATH = "/v1/messages/batches"
COMPLETE_PATH = "/v1/complete"


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def decode_json(resp: RawResponse) -> Outcome[JsonObject]:
    """Decode a 2xx body; empty or malformed bodies become ParseFailure."""
    if not resp.text or not resp.text.strip():
        return Failure(ClassifiedError(ErrorKind.PARSE_FAILURE, "received empty response from API",
                                       resp.status_code, retryable=False))
    try:
        data = json.loads(resp.text)
    except ValueError as e:
        return Failure(ClassifiedError(ErrorKind.PARSE_FAILURE, f"failed to parse response: {e}",
                                       resp.status_code, retryable=False))
    if not isinstance(data, dict):
        return Failure(ClassifiedError(ErrorKind.PARSE_FAILURE, "failed to parse response: expected a JSON object",
                                       resp.status_code, retryable=False))
    return Success(data)


class AnthropicClient:
    """
    Thin client for the Messages API:
    - builds the auth/version headers and serializes payloads once per call
    - non-streaming calls go through RequestExecutor.execute (retried)
    - stream_message goes through execute_streaming (never retried)
    Every call returns an Outcome; nothing raises for API failures.
    """

    def __init__(
        self,
        options: ClientOptions,
        *,
        transport: Optional[Transport] = None,
        telemetry: Optional[TelemetrySink] = None,
        policy: Optional[ResiliencePolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.options = options
        self._owned_transport: Optional[HttpxTransport] = None
        if transport is None:
            self._owned_transport = HttpxTransport(timeout=options.timeout)
            transport = self._owned_transport
        self.transport = transport
        self.executor = RequestExecutor(
            transport,
            options.base_url,
            policy or ResiliencePolicy(max_retries=options.max_retries),
            telemetry=telemetry if options.enable_telemetry else None,
            sleep=sleep,
        )

    # ----- request building -----

    def _headers(self, beta: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "anthropic-version": self.options.api_version,
            "x-api-key": self.options.api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self.options.user_agent:
            headers["user-agent"] = self.options.user_agent
        if beta:
            headers["anthropic-beta"] = beta
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                 *, beta: Optional[str] = None) -> ApiRequest:
        body = json.dumps(_drop_none(payload), ensure_ascii=False) if payload is not None else None
        return ApiRequest(method=method, path=path, body=body, headers=self._headers(beta))

    async def _json_call(self, request: ApiRequest, op: str, cancel: Optional[CancelToken]) -> Outcome[JsonObject]:
        outcome = await self.executor.execute(request, op=op, cancel=cancel)
        if isinstance(outcome, Failure):
            return outcome
        decoded = decode_json(outcome.value)
        if isinstance(decoded, Failure):
            _logger.error("Could not decode %s response: %s", op, decoded.error.message)
        return decoded

    # ----- API surface -----

    async def create_message(self, payload: Dict[str, Any], *, beta: Optional[str] = None,
                             cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        request = self._request("POST", MESSAGES_PATH, {**payload, "stream": False}, beta=beta)
        return await self._json_call(request, "messages", cancel)

    async def create_message_with_tools(self, payload: Dict[str, Any], tools: List[Dict[str, Any]],
                                        *, cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        request = self._request("POST", MESSAGES_PATH, {**payload, "tools": tools, "stream": False},
                                beta=BetaFeatures.TOOLS)
        return await self._json_call(request, "messages_with_tools", cancel)

    async def create_message_with_caching(self, payload: Dict[str, Any], *,
                                          cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        request = self._request("POST", MESSAGES_PATH, {**payload, "stream": False},
                                beta=BetaFeatures.PROMPT_CACHING)
        return await self._json_call(request, "messages_with_caching", cancel)

    async def create_message_batch(self, requests: List[Dict[str, Any]], *,
                                   cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        request = self._request("POST", BATCHES_PATH, {"requests": requests}, beta=BetaFeatures.MESSAGE_BATCHES)
        return await self._json_call(request, "create_batch", cancel)

    async def get_message_batch(self, batch_id: str, *, cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        if not batch_id or not batch_id.strip():
            raise ValueError("batch_id must be a non-empty string")
        request = self._request("GET", f"{BATCHES_PATH}/{batch_id.strip()}", beta=BetaFeatures.MESSAGE_BATCHES)
        return await self._json_call(request, "get_batch", cancel)

    async def create_completion(self, payload: Dict[str, Any], *,
                                cancel: Optional[CancelToken] = None) -> Outcome[JsonObject]:
        """Legacy text-completions endpoint."""
        request = self._request("POST", COMPLETE_PATH, {**payload, "stream": False})
        return await self._json_call(request, "complete", cancel)

    async def stream_message(self, payload: Dict[str, Any], *, beta: Optional[str] = None,
                             cancel: Optional[CancelToken] = None) -> Outcome[EventStream]:
        request = self._request("POST", MESSAGES_PATH, {**payload, "stream": True}, beta=beta)
        return await self.executor.execute_streaming(request, op="messages_stream", cancel=cancel)

    # ----- lifecycle -----

    async def aclose(self) -> None:
        if self._owned_transport is not None:
            await self._owned_transport.aclose()

    async def __aenter__(self) -> "AnthropicClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


def message_text(message: JsonObject) -> str:
    """Concatenate the text blocks of a Messages API response."""
    parts = []
    for block in message.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)
