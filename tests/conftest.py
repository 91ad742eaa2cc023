"""Shared pytest fixtures for the kafka_dump test-suite."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from kafka_dump.utils.config import GlobalSettings, get_settings
from tests.fixtures.pipeline_fixtures import TOPIC


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep KAFKA_DUMP_* variables from the developer shell out of the tests."""

    for key in list(os.environ):
        if key.startswith("KAFKA_DUMP_"):
            monkeypatch.delenv(key, raising=False)

    get_settings(reload=True)
    yield
    get_settings(reload=True)


@pytest.fixture
def output_path(tmp_path: Path) -> Path:
    return tmp_path / "dump.sqlite"


@pytest.fixture
def settings(output_path: Path) -> GlobalSettings:
    """Settings for a run against ``output_path``."""

    return GlobalSettings(topic=TOPIC, output=output_path)
