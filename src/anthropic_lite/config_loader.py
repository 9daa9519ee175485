# src/anthropic_lite/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml


class ConfigError(ValueError):
    pass


_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def _optional_number(section: Dict[str, Any], key: str, dotted: str, typ: type) -> None:
    if key not in section or section[key] is None:
        return
    val = section[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(val, bool) or not isinstance(val, (int, float) if typ is float else int):
        raise ConfigError(f"'{dotted}' must be {'a number' if typ is float else 'an integer'}")


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "client.base_url", str)
    _require(raw, "model.name", str)
    _require(raw, "runtime.stream", bool)

    client = raw["client"]
    _optional_number(client, "timeout", "client.timeout", float)
    _optional_number(client, "max_retries", "client.max_retries", int)
    for key in ("api_version", "user_agent"):
        if client.get(key) is not None and not isinstance(client[key], str):
            raise ConfigError(f"'client.{key}' must be a string")

    # Normalise enumerations; a bare `logging:` key loads as None
    if not isinstance(raw.get("logging"), dict):
        raw["logging"] = {}
    level = str(raw["logging"].get("level") or "warning").lower()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown logging.level '{level}' (expected one of {', '.join(_LOG_LEVELS)}).")
    raw["logging"]["level"] = level

    return raw
