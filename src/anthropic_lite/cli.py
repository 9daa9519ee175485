from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .bootstrap import build_app
from .client import AnthropicClient, message_text
from .config_loader import ConfigError
from .core.errors import ClassifiedError, ProviderError
from .core.outcome import Failure
from .logging_setup import configure_logging

app = typer.Typer(add_completion=False, help="Minimal client for the Anthropic Messages API.")

DEFAULT_CONFIG = Path("config/default.yaml")


def _print_error(err: ClassifiedError) -> None:
    status = f" (HTTP {err.http_status})" if err.http_status is not None else ""
    typer.echo(f"[error] {err.kind.value}{status}: {err.message}", err=True)


def _load(config: Path) -> Dict[str, Any]:
    try:
        ctx = build_app(config)
    except (ConfigError, FileNotFoundError) as e:
        typer.echo(f"[config] {e}", err=True)
        raise typer.Exit(2)
    configure_logging(ctx["cfg"]["logging"]["level"])
    return ctx


async def _ask(client: AnthropicClient, payload: Dict[str, Any], use_stream: bool) -> int:
    async with client:
        if not use_stream:
            outcome = await client.create_message(payload)
            if isinstance(outcome, Failure):
                _print_error(outcome.error)
                return 1
            typer.echo(message_text(outcome.value))
            return 0

        outcome = await client.stream_message(payload)
        if isinstance(outcome, Failure):
            _print_error(outcome.error)
            return 1
        try:
            async with outcome.value as events:
                async for event in events:
                    if event.text:
                        typer.echo(event.text, nl=False)
        except ProviderError as e:
            typer.echo("")
            _print_error(e.classified)
            return 1
        typer.echo("")
        return 0


@app.command()
def ask(
    prompt: str,
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="YAML config file."),
    model: Optional[str] = typer.Option(None, help="Override model.name from the config."),
    max_tokens: int = typer.Option(1024, "--max-tokens", min=1),
    system: Optional[str] = typer.Option(None, help="System prompt."),
    stream: Optional[bool] = typer.Option(None, "--stream/--no-stream", help="Override runtime.stream."),
):
    """Send one user message and print the reply."""
    ctx = _load(config)
    use_stream = ctx["cfg"]["runtime"]["stream"] if stream is None else stream
    payload = {
        "model": model or ctx["model"],
        "max_tokens": max_tokens,
        "system": system,
        "messages": [{"role": "user", "content": prompt}],
    }
    try:
        code = asyncio.run(_ask(ctx["client"], payload, use_stream))
    except KeyboardInterrupt:
        typer.echo("\n[interrupted]", err=True)
        code = 130
    raise typer.Exit(code)


@app.command("batch-status")
def batch_status(
    batch_id: str,
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="YAML config file."),
):
    """Show the processing status of a message batch."""
    ctx = _load(config)

    async def run() -> int:
        async with ctx["client"] as client:
            outcome = await client.get_message_batch(batch_id)
        if isinstance(outcome, Failure):
            _print_error(outcome.error)
            return 1
        batch = outcome.value
        typer.echo(f"{batch.get('id', batch_id)}: {batch.get('processing_status', 'unknown')}")
        return 0

    raise typer.Exit(asyncio.run(run()))


if __name__ == "__main__":
    app()
