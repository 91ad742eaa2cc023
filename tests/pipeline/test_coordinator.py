"""End-to-end tests for the ingest pipeline with an in-memory Kafka source."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

from kafka_dump.exceptions import (
    ConfigurationError,
    PipelineAbortedError,
    PipelineError,
    StoreError,
    TransportError,
)
from kafka_dump.pipeline.coordinator import IngestPipeline, run_pipeline
from kafka_dump.schemas.records import Batch, PersistencePolicy
from kafka_dump.utils.config import GlobalSettings
from tests.fixtures.pipeline_fixtures import (
    TABLE,
    EndlessSource,
    FakeSource,
    read_rows,
    record,
    table_exists,
)


def _quiet(_: str) -> None:
    return None


def test_plain_mode_single_partition(output_path: Path) -> None:
    """Three records with distinct keys produce three rows, one per offset."""

    source = FakeSource([[record(0, b"a", b"1"), record(1, b"b", b"2"), record(2, b"c", b"3")]])

    result = IngestPipeline(source, output_path, trace=_quiet).run()

    assert read_rows(output_path) == [
        (0, 0, b"a", b"1"),
        (0, 1, b"b", b"2"),
        (0, 2, b"c", b"3"),
    ]
    assert result.fetch.records == 3
    assert result.persist.inserted == 3
    assert source.commits == 1


def test_plain_mode_keeps_every_record_across_partitions(output_path: Path) -> None:
    batches = [
        [record(0, b"k", b"v1", partition=0), record(0, b"k", b"v2", partition=1)],
        [record(1, b"k", b"", partition=0)],
    ]

    IngestPipeline(FakeSource(batches), output_path, trace=_quiet).run()

    assert read_rows(output_path) == [
        (0, 0, b"k", b"v1"),
        (0, 1, b"k", b""),
        (1, 0, b"k", b"v2"),
    ]


def test_compacted_mode_keeps_latest_value(output_path: Path) -> None:
    source = FakeSource([[record(0, b"k", b"v1")], [record(5, b"k", b"v2")]])

    IngestPipeline(
        source, output_path, policy=PersistencePolicy.COMPACTED, trace=_quiet
    ).run()

    assert read_rows(output_path) == [(0, 5, b"k", b"v2")]


def test_compacted_mode_tombstone_removes_key(output_path: Path) -> None:
    source = FakeSource([[record(0, b"k", b"v1"), record(1, b"k", b"")]])
    lines: list[str] = []

    result = IngestPipeline(
        source, output_path, policy=PersistencePolicy.COMPACTED, trace=lines.append
    ).run()

    assert read_rows(output_path) == []
    assert result.persist.deleted == 1
    assert lines == ["orders.v1 0 0 v1", "orders.v1 0 1 "]


def test_empty_topic_commits_empty_table(output_path: Path) -> None:
    source = FakeSource()

    result = IngestPipeline(source, output_path, trace=_quiet).run()

    assert source.polls == 1
    assert result.persist.records == 0
    assert table_exists(output_path)
    assert read_rows(output_path) == []

    engine = create_engine(f"sqlite:///{output_path}")
    try:
        inspector = inspect(engine)
        assert [c["name"] for c in inspector.get_columns(TABLE)] == [
            "partition",
            "offset",
            "key",
            "value",
        ]
        assert inspector.get_pk_constraint(TABLE)["constrained_columns"] == [
            "partition",
            "offset",
        ]
    finally:
        engine.dispose()


def test_second_run_replaces_previous_output(output_path: Path) -> None:
    IngestPipeline(
        FakeSource([[record(0, b"old", b"1"), record(1, b"old", b"2")]]),
        output_path,
        trace=_quiet,
    ).run()

    IngestPipeline(FakeSource([[record(0, b"new", b"3")]]), output_path, trace=_quiet).run()

    assert read_rows(output_path) == [(0, 0, b"new", b"3")]


def test_fetcher_failure_is_surfaced_after_handed_off_data_is_committed(
    output_path: Path,
) -> None:
    source = FakeSource(
        [[record(0)], [record(1)]],
        error=TransportError("connection reset"),
    )

    with pytest.raises(PipelineError) as excinfo:
        IngestPipeline(source, output_path, trace=_quiet).run()

    assert excinfo.value.stage == "fetcher"
    assert isinstance(excinfo.value.error, TransportError)
    assert read_rows(output_path) == [(0, 0, b"k", b"v"), (0, 1, b"k", b"v")]


def test_persister_failure_unblocks_fetcher(tmp_path: Path) -> None:
    """A directory as output fails setup; the endless fetcher must not hang."""

    source = EndlessSource()

    with pytest.raises(PipelineError) as excinfo:
        IngestPipeline(source, tmp_path, queue_capacity=1, trace=_quiet).run()

    assert excinfo.value.stage == "persister"
    assert isinstance(excinfo.value.error, StoreError)
    assert isinstance(excinfo.value.__cause__, StoreError)


def test_persister_failure_mid_run_unblocks_fetcher(output_path: Path) -> None:
    class _DuplicatingSource(EndlessSource):
        def poll(self):
            batch = super().poll()
            if self.polls == 3:
                # Same (partition, offset) as the first batch.
                return Batch.of([record(0, b"dup")])
            return batch

    source = _DuplicatingSource()

    with pytest.raises(PipelineError) as excinfo:
        IngestPipeline(source, output_path, queue_capacity=2, trace=_quiet).run()

    assert excinfo.value.stage == "persister"
    assert not isinstance(excinfo.value.error, PipelineAbortedError)


def test_interrupt_in_persister_releases_blocked_fetcher(
    output_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A KeyboardInterrupt propagates unwrapped instead of hanging on the fetcher."""

    pipeline = IngestPipeline(EndlessSource(), output_path, queue_capacity=1, trace=_quiet)
    write_batch = pipeline.persister._write_batch
    calls = 0

    def _interrupting_write(*args):
        nonlocal calls
        calls += 1
        if calls == 3:
            raise KeyboardInterrupt
        write_batch(*args)

    monkeypatch.setattr(pipeline.persister, "_write_batch", _interrupting_write)
    raised: list[BaseException] = []

    def _run() -> None:
        try:
            pipeline.run()
        except BaseException as exc:
            raised.append(exc)

    worker = threading.Thread(target=_run, daemon=True)
    worker.start()
    worker.join(timeout=5.0)

    assert not worker.is_alive()
    assert len(raised) == 1
    assert type(raised[0]) is KeyboardInterrupt
    assert pipeline.channel.aborted
    assert pipeline.fetcher.stop_requested

def test_stop_lets_persister_commit_handed_off_batches(output_path: Path) -> None:
    class _StoppingSource(FakeSource):
        pipeline: IngestPipeline | None = None

        def commit(self) -> None:
            super().commit()
            if self.commits == 2 and self.pipeline is not None:
                self.pipeline.stop()

    source = _StoppingSource([[record(offset)] for offset in range(5)])
    pipeline = IngestPipeline(source, output_path, trace=_quiet)
    source.pipeline = pipeline

    result = pipeline.run()

    assert result.fetch.stopped is True
    assert [row[1] for row in read_rows(output_path)] == [0, 1]


def test_topic_name_is_sanitized(output_path: Path) -> None:
    source = FakeSource([[record(0, topic="team-a.orders")]], topic="team-a.orders")

    pipeline = IngestPipeline(source, output_path, trace=_quiet)
    pipeline.run()

    assert pipeline.table_name == "team_a_orders"
    assert read_rows(output_path, "team_a_orders") == [(0, 0, b"k", b"v")]


def test_run_pipeline_uses_settings(settings: GlobalSettings, output_path: Path) -> None:
    settings = settings.model_copy(update={"compact": True, "queue_capacity": 1})
    source = FakeSource([[record(0, b"k", b"v1")], [record(1, b"k", b"v2")]])

    result = run_pipeline(settings, source=source, trace=_quiet)

    assert result.persist.table_name == TABLE
    assert read_rows(output_path) == [(0, 1, b"k", b"v2")]


def test_run_pipeline_requires_topic(output_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        run_pipeline(GlobalSettings(output=output_path), source=FakeSource(), trace=_quiet)
