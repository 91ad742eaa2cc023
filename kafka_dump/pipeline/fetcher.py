"""Fetcher stage: poll Kafka and hand batches to the persister."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from ..exceptions import PipelineAbortedError
from ..schemas.records import Batch
from ..utils.logging import setup_logger
from .channel import BatchChannel

logger = setup_logger(__name__, context={"stage": "fetcher"})


class BatchSource(Protocol):
    """What the fetcher needs from a Kafka reader."""

    topic: str

    def poll(self) -> Batch: ...

    def commit(self) -> None: ...


@dataclass(slots=True)
class FetchSummary:
    batches: int = 0
    records: int = 0
    stopped: bool = False


class Fetcher:
    """
    Polls ``source`` until it returns an empty batch.

    Offsets are committed only after a batch has been handed to the channel,
    so a crash re-delivers at most the batch in flight. The channel is closed
    on every exit path.
    """

    def __init__(self, source: BatchSource, channel: BatchChannel) -> None:
        self.source = source
        self.channel = channel
        self._stop = threading.Event()
        self._log = logger.bind(topic=source.topic)

    def stop(self) -> None:
        """Request a stop before the next poll."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(self) -> FetchSummary:
        summary = FetchSummary()
        self._log.info("Fetcher started", extra={"status": "started"})
        try:
            while not self._stop.is_set():
                batch = self.source.poll()
                if not batch:
                    self._log.info("Reached end of topic", extra={"status": "exhausted"})
                    break

                self.channel.put(batch)
                self.source.commit()

                summary.batches += 1
                summary.records += len(batch)
                self._log.debug(
                    "Handed off batch of %d record(s) from partitions %s",
                    len(batch),
                    batch.partitions(),
                )
            else:
                summary.stopped = True
                self._log.info("Fetcher stopped on request", extra={"status": "stopped"})
        except PipelineAbortedError:
            self._log.warning("Persister went away, fetcher giving up", extra={"status": "aborted"})
            raise
        except Exception:
            self._log.error("Fetcher failed", extra={"status": "error"}, exc_info=True)
            raise
        finally:
            self.channel.close()

        self._log.info(
            "Fetcher finished after %d batch(es), %d record(s)",
            summary.batches,
            summary.records,
            extra={"status": "finished"},
        )
        return summary
