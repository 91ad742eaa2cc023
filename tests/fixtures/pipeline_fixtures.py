"""In-memory stand-ins for the Kafka source and helpers to inspect the SQLite output."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from sqlalchemy import create_engine, inspect, text

from kafka_dump.schemas.records import Batch, Record

TOPIC = "orders.v1"
TABLE = "orders_v1"


def record(
    offset: int,
    key: bytes = b"k",
    value: bytes = b"v",
    *,
    partition: int = 0,
    topic: str = TOPIC,
) -> Record:
    return Record(topic=topic, partition=partition, offset=offset, key=key, value=value)


class FakeSource:
    """Batch source replaying canned batches, then an optional error, then end of topic."""

    def __init__(
        self,
        batches: Iterable[Iterable[Record]] = (),
        *,
        topic: str = TOPIC,
        error: Exception | None = None,
    ) -> None:
        self.topic = topic
        self._batches = [Batch.of(batch) for batch in batches]
        self._error = error
        self.polls = 0
        self.commits = 0

    def poll(self) -> Batch:
        self.polls += 1
        if self._batches:
            return self._batches.pop(0)
        if self._error is not None:
            raise self._error
        return Batch.empty()

    def commit(self) -> None:
        self.commits += 1


class EndlessSource:
    """Batch source that never reaches the end of the topic."""

    def __init__(self, topic: str = TOPIC) -> None:
        self.topic = topic
        self.polls = 0
        self.commits = 0

    def poll(self) -> Batch:
        offset = self.polls
        self.polls += 1
        return Batch.of([record(offset, key=f"k{offset}".encode())])

    def commit(self) -> None:
        self.commits += 1


def read_rows(path: Path, table: str = TABLE) -> list[tuple[int, int, bytes, bytes]]:
    """Return committed rows ordered by partition and offset."""

    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.connect() as connection:
            result = connection.execute(
                text(
                    f'SELECT "partition", "offset", "key", "value" FROM "{table}" '
                    'ORDER BY "partition", "offset"'
                )
            )
            return [tuple(row) for row in result]
    finally:
        engine.dispose()


def table_exists(path: Path, table: str = TABLE) -> bool:
    engine = create_engine(f"sqlite:///{path}")
    try:
        return inspect(engine).has_table(table)
    finally:
        engine.dispose()
