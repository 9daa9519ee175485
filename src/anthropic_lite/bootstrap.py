from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from pydantic import ValidationError

from .client import AnthropicClient
from .config_loader import ConfigError, load_config
from .core.ports import Transport
from .options import ClientOptions
from .secrets.sources import SecretsResolver
from .telemetry.recorder import TelemetryRecorder

# config key -> ClientOptions field
_CLIENT_KEYS = {
    "base_url": "base_url",
    "timeout": "timeout",
    "max_retries": "max_retries",
    "api_version": "api_version",
    "user_agent": "user_agent",
    "telemetry": "enable_telemetry",
}


def build_app(config_path: Path, *, transport: Optional[Transport] = None) -> Dict[str, Any]:
    """
    Composition root: load YAML, resolve the API key, validate options and
    build the client (with its telemetry recorder).
    Returns: dict with cfg, options, client, telemetry, model.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent

    # ----- Secrets -----
    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping") or {},
        dotenv_path=config_dir / secrets_cfg.get("dotenv_file", ".env"),
    )
    api_key = resolver.secret("api_key")
    if not api_key:
        raise ConfigError("No API key found for 'anthropic' (set ANTHROPIC_API_KEY or configure secrets).")

    # ----- Options -----
    client_cfg = cfg["client"]
    values = {field: client_cfg[key] for key, field in _CLIENT_KEYS.items() if client_cfg.get(key) is not None}
    try:
        options = ClientOptions(api_key=api_key, **values)
    except ValidationError as e:
        raise ConfigError(f"Invalid client options in {config_path.name}:\n{e}") from e

    # ----- Client -----
    model_name = cfg["model"]["name"]
    telemetry = TelemetryRecorder(model=model_name) if options.enable_telemetry else None
    client = AnthropicClient(options, transport=transport, telemetry=telemetry)

    return {
        "cfg": cfg,
        "options": options,
        "client": client,
        "telemetry": telemetry,
        "model": model_name,
    }
