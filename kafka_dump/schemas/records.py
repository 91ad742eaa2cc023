"""Value objects flowing from the Kafka fetcher to the SQLite persister."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from ..exceptions import ConfigurationError

_DISALLOWED_IDENTIFIER_CHARS = re.compile(r"[^0-9A-Za-z_]")


class PersistencePolicy(str, Enum):
    """How each record is applied to the target table."""

    PLAIN = "plain"
    COMPACTED = "compacted"

    @classmethod
    def from_flag(cls, compact: bool) -> PersistencePolicy:
        return cls.COMPACTED if compact else cls.PLAIN


@dataclass(frozen=True, slots=True)
class Record:
    """A single Kafka message as persisted: position, key and value bytes."""

    topic: str
    partition: int
    offset: int
    key: bytes = b""
    value: bytes = b""

    def __post_init__(self) -> None:
        if self.partition < 0:
            raise ValueError(f"partition must be non-negative, got {self.partition}")
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")

    @classmethod
    def from_message(
        cls,
        topic: str,
        partition: int,
        offset: int,
        key: bytes | None,
        value: bytes | None,
    ) -> Record:
        """Build a record, treating Kafka null keys and values as empty bytes."""

        return cls(
            topic=topic,
            partition=partition,
            offset=offset,
            key=bytes(key) if key else b"",
            value=bytes(value) if value else b"",
        )

    def is_tombstone(self) -> bool:
        """An empty value deletes the key under log-compaction semantics."""

        return len(self.value) == 0

    def decoded_value(self) -> str:
        return self.value.decode("utf-8", errors="replace")

    def trace_line(self) -> str:
        """Render the space-separated trace line for this record."""

        return f"{self.topic} {self.partition} {self.offset} {self.decoded_value()}"


@dataclass(frozen=True, slots=True)
class Batch:
    """Records returned by one poll, flattened in fetch order."""

    records: tuple[Record, ...] = ()

    @classmethod
    def of(cls, records: Iterable[Record]) -> Batch:
        return cls(records=tuple(records))

    @classmethod
    def empty(cls) -> Batch:
        return cls()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def partitions(self) -> list[int]:
        """Distinct partitions present in the batch, ascending."""

        return sorted({record.partition for record in self.records})


def sanitize_table_name(topic: str) -> str:
    """
    Derive a SQL identifier from a Kafka topic name.

    Every character outside ``[0-9A-Za-z_]`` (Kafka allows ``.`` and ``-``)
    becomes ``_``; a leading digit gets a ``_`` prefix.

    Raises:
        ConfigurationError: If the topic name is empty
    """
    if not topic:
        raise ConfigurationError("Topic name must not be empty")

    name = _DISALLOWED_IDENTIFIER_CHARS.sub("_", topic)
    if name[0].isdigit():
        name = f"_{name}"
    return name
