from __future__ import annotations
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_API_VERSION = "2023-06-01"


class ClientOptions(BaseModel):
    """
    Resolved client configuration. Validation happens here, once; the
    executor and transport take the values as given.
    """
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    # seconds; applied to each httpx phase (connect, read, write, pool), not the whole request
    timeout: float = Field(default=100.0, ge=1, le=600)
    max_retries: int = Field(default=3, ge=0, le=10)
    api_version: str = DEFAULT_API_VERSION
    user_agent: Optional[str] = None
    enable_telemetry: bool = True

    @field_validator("api_key")
    @classmethod
    def _check_api_key(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("API key is required and cannot be empty.")
        if len(v) < 20:
            raise ValueError("API key appears to be invalid (too short).")
        if not v.lower().startswith("sk-ant-"):
            raise ValueError("API key must start with 'sk-ant-'.")
        return v

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, v: str) -> str:
        parsed = urlparse((v or "").strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Base URL must be a valid absolute URI.")
        return v.strip().rstrip("/")
