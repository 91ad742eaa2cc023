"""Table definition for a dumped Kafka topic."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    UniqueConstraint,
)

from ..schemas.records import PersistencePolicy


def build_topic_table(metadata: MetaData, name: str, policy: PersistencePolicy) -> Table:
    """
    Declare the table that receives one topic's messages.

    One row per ``(partition, offset)``. Under ``COMPACTED`` the ``key`` column
    is also unique with SQLite's ``ON CONFLICT REPLACE``, so a later write for
    a key evicts the earlier row instead of failing.
    """

    constraints: list[PrimaryKeyConstraint | UniqueConstraint] = [
        PrimaryKeyConstraint("partition", "offset", name=f"pk_{name}"),
    ]
    if policy is PersistencePolicy.COMPACTED:
        constraints.append(
            UniqueConstraint("key", name=f"uq_{name}_key", sqlite_on_conflict="REPLACE")
        )

    return Table(
        name,
        metadata,
        Column("partition", Integer, nullable=False, autoincrement=False),
        Column("offset", Integer, nullable=False, autoincrement=False),
        Column("key", LargeBinary, nullable=True),
        Column("value", LargeBinary, nullable=True),
        *constraints,
    )
