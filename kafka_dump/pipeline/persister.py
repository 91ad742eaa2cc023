"""Persister stage: drain batches into the SQLite output file."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click
from sqlalchemy import MetaData
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StoreError
from ..models.base import create_output_engine, reset_output
from ..models.repository import TopicTableRepository
from ..models.topic_table import build_topic_table
from ..schemas.records import Batch, PersistencePolicy
from ..utils.logging import setup_logger
from .channel import BatchChannel

logger = setup_logger(__name__, context={"stage": "persister"})

TraceSink = Callable[[str], None]


@dataclass(slots=True)
class PersistSummary:
    """Outcome of a completed persister run."""

    table_name: str
    batches: int = 0
    inserted: int = 0
    deleted: int = 0
    commits: int = 0

    @property
    def records(self) -> int:
        return self.inserted + self.deleted


class Persister:
    """
    Writes every record from ``channel`` to ``table_name`` in ``output``.

    The previous output file is removed and the table recreated before the
    first batch is read. Writes share one transaction committed once the
    channel is closed and drained, unless ``commit_every`` asks for a commit
    after every N records.
    """

    def __init__(
        self,
        output: str | Path,
        table_name: str,
        policy: PersistencePolicy,
        channel: BatchChannel,
        *,
        commit_every: int | None = None,
        trace: TraceSink | None = None,
        topic: str | None = None,
    ) -> None:
        if commit_every is not None and commit_every < 1:
            raise ValueError(f"commit_every must be at least 1, got {commit_every}")
        self.output = Path(output)
        self.table_name = table_name
        self.policy = policy
        self.channel = channel
        self.commit_every = commit_every
        self._trace = trace or click.echo
        self._log = logger.bind(topic=topic or "-", table=table_name)

    def run(self) -> PersistSummary:
        """
        Set up the output table and drain the channel into it.

        Raises:
            StoreError: If the output cannot be created, written or committed
        """
        try:
            return self._run()
        except Exception:
            self.channel.abort()
            self._log.error("Persister failed", extra={"status": "error"}, exc_info=True)
            raise
        except BaseException:
            self.channel.abort()
            self._log.warning("Persister interrupted", extra={"status": "interrupted"})
            raise

    def _run(self) -> PersistSummary:
        summary = PersistSummary(table_name=self.table_name)

        reset_output(self.output)
        engine = create_output_engine(self.output)
        table = build_topic_table(MetaData(), self.table_name, self.policy)

        try:
            with engine.connect() as connection:
                repository = TopicTableRepository(connection, table, self.policy)
                repository.create_table()
                self._log.info(
                    "Created table %s in %s (%s)",
                    self.table_name,
                    self.output,
                    self.policy.value,
                    extra={"status": "ready"},
                )

                uncommitted = 0
                for batch in self.channel:
                    self._write_batch(repository, batch, summary)
                    uncommitted += len(batch)
                    if self.commit_every is not None and uncommitted >= self.commit_every:
                        self._commit(connection, summary)
                        uncommitted = 0

                self._commit(connection, summary)
        finally:
            engine.dispose()

        self._log.info(
            "Persisted %d record(s) from %d batch(es): %d inserted, %d deleted",
            summary.records,
            summary.batches,
            summary.inserted,
            summary.deleted,
            extra={"status": "committed"},
        )
        return summary

    def _write_batch(
        self,
        repository: TopicTableRepository,
        batch: Batch,
        summary: PersistSummary,
    ) -> None:
        for record in batch:
            self._trace(record.trace_line())
        result = repository.apply_all(batch)
        summary.batches += 1
        summary.inserted += result.inserted
        summary.deleted += result.deleted

    def _commit(self, connection: Connection, summary: PersistSummary) -> None:
        try:
            connection.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to commit '{self.table_name}': {exc}") from exc
        summary.commits += 1
        self._log.debug("Committed after %d record(s)", summary.records)
