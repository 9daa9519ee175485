from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class StreamEventType(str, Enum):
    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    PING = "ping"
    ERROR = "error"
    UNKNOWN = "unknown"


_KNOWN = {t.value: t for t in StreamEventType if t is not StreamEventType.UNKNOWN}


@dataclass(frozen=True)
class StreamEvent:
    """
    One decoded `data:` payload. `name` is the raw type string the server sent;
    `type` is UNKNOWN for names this client does not route, with the payload kept as-is.
    """
    type: StreamEventType
    name: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "StreamEvent":
        name = data.get("type")
        name = name if isinstance(name, str) else ""
        return cls(type=_KNOWN.get(name, StreamEventType.UNKNOWN), name=name, data=data)

    @property
    def index(self) -> Optional[int]:
        idx = self.data.get("index")
        return idx if isinstance(idx, int) else None

    @property
    def text(self) -> str:
        # Only text deltas carry printable output
        if self.type is not StreamEventType.CONTENT_BLOCK_DELTA:
            return ""
        delta = self.data.get("delta") or {}
        piece = delta.get("text") if isinstance(delta, dict) else None
        return piece if isinstance(piece, str) else ""

    @property
    def usage(self) -> Dict[str, Any]:
        if self.type is StreamEventType.MESSAGE_START:
            message = self.data.get("message") or {}
            usage = message.get("usage") if isinstance(message, dict) else None
        else:
            usage = self.data.get("usage")
        return usage if isinstance(usage, dict) else {}
