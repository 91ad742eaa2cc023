"""Repository applying Kafka records to a topic table."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import Connection, Table, bindparam, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StoreError
from ..schemas.records import PersistencePolicy, Record


class RecordAction(str, Enum):
    """What applying a record did to the table."""

    INSERTED = "inserted"
    DELETED = "deleted"


@dataclass(slots=True)
class ApplyResult:
    """Row operations performed for a group of records."""

    inserted: int = 0
    deleted: int = 0

    def __iadd__(self, other: ApplyResult) -> ApplyResult:
        self.inserted += other.inserted
        self.deleted += other.deleted
        return self


def _row(record: Record) -> dict[str, Any]:
    return {
        "partition": record.partition,
        "offset": record.offset,
        "key": record.key,
        "value": record.value,
    }


class TopicTableRepository:
    """Data access helpers for a topic table under a :class:`PersistencePolicy`."""

    def __init__(self, connection: Connection, table: Table, policy: PersistencePolicy):
        self._connection = connection
        self.table = table
        self.policy = policy
        self._insert = table.insert()
        self._delete = table.delete().where(table.c.key == bindparam("tombstone_key"))

    def create_table(self) -> None:
        """Create the table; an existing table with the same name is an error."""

        try:
            self.table.create(self._connection, checkfirst=False)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create table '{self.table.name}': {exc}") from exc

    def action_for(self, record: Record) -> RecordAction:
        if self.policy is PersistencePolicy.COMPACTED and record.is_tombstone():
            return RecordAction.DELETED
        return RecordAction.INSERTED

    def apply(self, record: Record) -> RecordAction:
        """Insert ``record`` or, for a compacted tombstone, delete its key."""

        action = self.action_for(record)
        try:
            if action is RecordAction.DELETED:
                self._connection.execute(self._delete, {"tombstone_key": record.key})
            else:
                self._connection.execute(self._insert, _row(record))
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Failed to write {record.topic}/{record.partition}@{record.offset} "
                f"to '{self.table.name}': {exc}"
            ) from exc
        return action

    def apply_all(self, records: Iterable[Record]) -> ApplyResult:
        """
        Apply records in order, sending consecutive inserts as one executemany.

        Deletes flush the pending inserts first so last-writer-wins ordering
        per key is preserved.
        """
        result = ApplyResult()
        pending: list[Record] = []

        for record in records:
            if self.action_for(record) is RecordAction.INSERTED:
                pending.append(record)
                continue
            result.inserted += self._insert_many(pending)
            pending = []
            self.apply(record)
            result.deleted += 1

        result.inserted += self._insert_many(pending)
        return result

    def _insert_many(self, records: list[Record]) -> int:
        if not records:
            return 0
        if len(records) == 1:
            self.apply(records[0])
            return 1
        try:
            self._connection.execute(self._insert, [_row(record) for record in records])
        except SQLAlchemyError as exc:
            first, last = records[0], records[-1]
            raise StoreError(
                f"Failed to write {len(records)} records "
                f"({first.partition}@{first.offset}..{last.partition}@{last.offset}) "
                f"to '{self.table.name}': {exc}"
            ) from exc
        return len(records)

    def count(self) -> int:
        """Return the number of rows currently visible in the table."""

        statement = select(func.count()).select_from(self.table)
        try:
            return int(self._connection.execute(statement).scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count rows in '{self.table.name}': {exc}") from exc
