"""Bounded, closable hand-off queue between the fetcher and the persister."""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterator
from typing import Final, cast

from ..exceptions import PipelineAbortedError
from ..schemas.records import Batch

_CLOSED: Final = object()

# How often a blocked put/close re-checks for an abort.
_ABORT_CHECK_SECONDS: Final[float] = 0.05


class BatchChannel:
    """
    FIFO of batches with a fixed capacity.

    ``put`` blocks while ``capacity`` batches are buffered, which stalls the
    fetcher until the persister drains one. The producer signals end of
    stream with :meth:`close`; the consumer signals failure with
    :meth:`abort`, which releases a producer blocked in ``put``.
    """

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._queue: queue.Queue[object] = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()
        self._aborted = threading.Event()
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def _blocking_put(self, item: object) -> None:
        while True:
            if self._aborted.is_set():
                raise PipelineAbortedError("Batch channel was aborted by the consumer")
            try:
                self._queue.put(item, timeout=_ABORT_CHECK_SECONDS)
                return
            except queue.Full:
                continue

    def put(self, batch: Batch) -> None:
        """
        Hand ``batch`` to the consumer, blocking while the channel is full.

        Raises:
            PipelineAbortedError: If the channel is closed or gets aborted
        """
        if self._closed.is_set():
            raise PipelineAbortedError("Cannot put a batch on a closed channel")
        self._blocking_put(batch)

    def close(self) -> None:
        """Signal that no further batches will be sent. Safe to call repeatedly."""

        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._blocking_put(_CLOSED)
        except PipelineAbortedError:
            # Nobody is left to read the marker.
            pass

    def abort(self) -> None:
        """Stop accepting batches and release any producer blocked in ``put``."""

        self._aborted.set()

    def get(self) -> Batch | None:
        """Return the next batch, or None once the channel is closed and drained."""

        if self._drained:
            return None
        item = self._queue.get()
        if item is _CLOSED:
            self._drained = True
            return None
        return cast(Batch, item)

    def __iter__(self) -> Iterator[Batch]:
        while True:
            batch = self.get()
            if batch is None:
                return
            yield batch
