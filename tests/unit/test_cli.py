# tests/unit/test_cli.py

from __future__ import annotations
import json
import sys
from pathlib import Path
from typer.testing import CliRunner

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fakes import FakeStreamBody, FakeTransport, ok, status
import anthropic_lite.cli as cli
from anthropic_lite.bootstrap import build_app
from anthropic_lite.cli import app  # Typer app

KEY = "sk-ant-REDACTED"


def write_config(tmp_path: Path, stream: bool) -> Path:
    cfg = tmp_path / "config" / "default.yaml"
    cfg.parent.mkdir(parents=True)
    cfg.write_text(
        f"""
client:
  base_url: https://api.example.test
  max_retries: 0
model:
  name: claude-test
runtime:
  stream: {"true" if stream else "false"}
""",
        encoding="utf-8",
    )
    return cfg


def use_transport(monkeypatch, transport):
    monkeypatch.setenv("ANTHROPIC_API_KEY", KEY)
    monkeypatch.setattr(cli, "build_app", lambda config: build_app(config, transport=transport))


def test_ask_non_streaming(tmp_path: Path, monkeypatch):
    t = FakeTransport([ok(json.dumps({"content": [{"type": "text", "text": "Hello there"}]}))])
    use_transport(monkeypatch, t)

    result = CliRunner().invoke(app, ["ask", "hi", "--config", str(write_config(tmp_path, False))])

    assert result.exit_code == 0, result.output
    assert "Hello there" in result.output
    sent = json.loads(t.calls[0][3])
    assert sent["model"] == "claude-test"
    assert sent["messages"] == [{"role": "user", "content": "hi"}]


def test_ask_streaming(tmp_path: Path, monkeypatch):
    body = FakeStreamBody(200, [
        'data: {"type":"content_block_delta","delta":{"text":"Hel"}}\n',
        'data: {"type":"content_block_delta","delta":{"text":"lo"}}\n',
        "data: [DONE]\n",
    ])
    t = FakeTransport(stream_body=body)
    use_transport(monkeypatch, t)

    result = CliRunner().invoke(app, ["ask", "hi", "--config", str(write_config(tmp_path, True))])

    assert result.exit_code == 0, result.output
    assert "Hello" in result.output
    assert t.stream_closed == 1


def test_ask_reports_classified_error(tmp_path: Path, monkeypatch):
    t = FakeTransport([status(401, '{"error":{"type":"authentication_error","message":"bad key"}}')])
    use_transport(monkeypatch, t)

    result = CliRunner().invoke(app, ["ask", "hi", "--no-stream", "--config", str(write_config(tmp_path, True))])

    assert result.exit_code == 1
    assert "[error] authentication (HTTP 401): bad key" in result.output


def test_batch_status(tmp_path: Path, monkeypatch):
    t = FakeTransport([ok('{"id": "msgbatch_1", "processing_status": "in_progress"}')])
    use_transport(monkeypatch, t)

    result = CliRunner().invoke(app, ["batch-status", "msgbatch_1", "--config", str(write_config(tmp_path, False))])

    assert result.exit_code == 0, result.output
    assert "msgbatch_1: in_progress" in result.output


def test_missing_config_exits_2(tmp_path: Path):
    result = CliRunner().invoke(app, ["ask", "hi", "--config", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 2
