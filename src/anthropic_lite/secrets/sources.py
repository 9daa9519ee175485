# src/anthropic_lite/secrets/sources.py

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

import keyring
from keyring.errors import KeyringError
from dotenv import dotenv_values

_logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "anthropic"


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # 1) exact env var name, 2) names derived from the service
        for key in (service, f"{service.upper()}_API_KEY", service.upper()):
            val = os.getenv(key)
            if val and val.strip():
                return val.strip()
        return None


class DotenvFileSource:
    """Reads a .env file without touching os.environ."""

    def __init__(self, path: Union[str, Path] = ".env"):
        self.path = Path(path)

    def get(self, service: str) -> Optional[str]:
        if not self.path.exists():
            return None
        values = dotenv_values(self.path)
        for key in (service, f"{service.upper()}_API_KEY", service.upper()):
            val = values.get(key)
            if val and val.strip():
                return val.strip()
        return None


class SystemKeyringSource:
    _ACCOUNTS = ("api_key", "ANTHROPIC_API_KEY", "default")

    def get(self, service: str) -> Optional[str]:
        try:
            cred = keyring.get_credential(service, None)
            if cred is not None and cred.password:
                return cred.password.strip()
            for account in self._ACCOUNTS:
                val = keyring.get_password(service, account)
                if val:
                    return val.strip()
        except KeyringError as e:
            _logger.debug("Keyring lookup for %r failed: %s", service, e)
        return None


_ALLOWED_METHODS = {"env", "dotenv", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]], *, dotenv_path: Union[str, Path] = ".env") -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "dotenv":
            sources.append(DotenvFileSource(dotenv_path))
        else:
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve secrets using one or more methods in order.
    mapping: names -> service/env-key, e.g. {"api_key": "ANTHROPIC_API_KEY"}
    """

    def __init__(self, method: Union[str, Iterable[str]] = "env", mapping: Optional[Dict[str, str]] = None,
                 *, dotenv_path: Union[str, Path] = ".env"):
        self._sources = build_secret_sources(method, dotenv_path=dotenv_path)
        self._map = mapping or {}

    def secret(self, name: str = "api_key") -> Optional[str]:
        service = self._map.get(name, DEFAULT_SERVICE)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
