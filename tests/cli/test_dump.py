"""Tests for the kafka-dump command-line entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml
from click.testing import CliRunner

from kafka_dump import __version__
from kafka_dump.cli import dump as dump_module
from kafka_dump.cli.dump import dump_topic
from kafka_dump.exceptions import PipelineError, TransportError
from kafka_dump.utils.config import GlobalSettings


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    """Replace the pipeline and logging setup with recorders."""

    calls: dict[str, Any] = {}

    def _fake_run_pipeline(settings: GlobalSettings, **kwargs: Any) -> None:
        calls["settings"] = settings
        calls["kwargs"] = kwargs

    monkeypatch.setattr(dump_module, "run_pipeline", _fake_run_pipeline)
    monkeypatch.setattr(
        dump_module, "configure_logging", lambda level, force=False: calls.setdefault("log", level)
    )
    return calls


def test_defaults_without_flags(captured: dict[str, Any]) -> None:
    result = CliRunner().invoke(dump_topic, ["-t", "orders.v1"])

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.topic == "orders.v1"
    assert settings.brokers == ["localhost:9092"]
    assert settings.output == Path("dump.sqlite")
    assert settings.compact is False
    assert settings.commit_every is None
    assert captured["kwargs"] == {"handle_signals": True}
    assert captured["log"] == "INFO"


def test_flags_are_passed_to_settings(captured: dict[str, Any], tmp_path: Path) -> None:
    output = tmp_path / "out.sqlite"

    result = CliRunner().invoke(
        dump_topic,
        [
            "-b", "kafka-1:9092",
            "--broker", "kafka-2:9092",
            "--topic", "customers",
            "-o", str(output),
            "-c",
            "--commit-every", "500",
            "--log-level", "debug",
        ],
    )

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.brokers == ["kafka-1:9092", "kafka-2:9092"]
    assert settings.topic == "customers"
    assert settings.output == output
    assert settings.compact is True
    assert settings.commit_every == 500
    assert settings.log_level == "DEBUG"


def test_config_file_values_sit_beneath_flags(captured: dict[str, Any], tmp_path: Path) -> None:
    config_file = tmp_path / "dump.yaml"
    config_file.write_text(
        yaml.safe_dump(
            {
                "brokers": ["from-file:9092"],
                "compact": True,
                "output": str(tmp_path / "file.sqlite"),
                "kafka": {"fetch_min_bytes": 2048},
            }
        )
    )

    result = CliRunner().invoke(
        dump_topic, ["-t", "orders", "--config", str(config_file), "-o", "flag.sqlite"]
    )

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.brokers == ["from-file:9092"]
    assert settings.compact is True
    assert settings.output == Path("flag.sqlite")
    assert settings.kafka.fetch_min_bytes == 2048


def test_topic_is_required(captured: dict[str, Any]) -> None:
    result = CliRunner().invoke(dump_topic, [])

    assert result.exit_code == 2
    assert "settings" not in captured


def test_pipeline_failure_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _failing_run_pipeline(settings: GlobalSettings, **kwargs: Any) -> None:
        raise PipelineError("fetcher", TransportError("connection refused"))

    monkeypatch.setattr(dump_module, "run_pipeline", _failing_run_pipeline)
    monkeypatch.setattr(dump_module, "configure_logging", lambda level, force=False: None)

    result = CliRunner().invoke(dump_topic, ["-t", "orders"])

    assert result.exit_code == 1
    assert "Error: fetcher failed: connection refused" in result.output


def test_invalid_config_file_exits_with_error(
    captured: dict[str, Any], tmp_path: Path
) -> None:
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("queue_capacity: 0\n")

    result = CliRunner().invoke(dump_topic, ["-t", "orders", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Configuration validation failed" in result.output
    assert "settings" not in captured


def test_version_option() -> None:
    result = CliRunner().invoke(dump_topic, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
