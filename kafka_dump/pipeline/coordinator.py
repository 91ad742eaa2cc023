"""Pipeline coordinator wiring the fetcher and persister together."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import ConfigurationError, PipelineError
from ..messaging.consumer import TopicReader
from ..schemas.records import PersistencePolicy, sanitize_table_name
from ..utils.config import GlobalSettings, get_settings
from ..utils.logging import setup_logger
from ..utils.signals import install_signal_handlers
from .channel import BatchChannel
from .fetcher import BatchSource, Fetcher, FetchSummary
from .persister import Persister, PersistSummary, TraceSink

logger = setup_logger(__name__, context={"stage": "pipeline"})


@dataclass(slots=True)
class PipelineResult:
    fetch: FetchSummary
    persist: PersistSummary


class IngestPipeline:
    """
    Runs the fetcher on a worker thread and the persister on the calling thread.

    Both units of work are joined. A persister failure aborts the channel so
    the fetcher cannot stay blocked on a full queue. A fetcher failure closes
    the channel; the persister commits what was handed off and the fetcher's
    error is then raised.
    """

    def __init__(
        self,
        source: BatchSource,
        output: str | Path,
        *,
        policy: PersistencePolicy = PersistencePolicy.PLAIN,
        queue_capacity: int = 10,
        commit_every: int | None = None,
        trace: TraceSink | None = None,
    ) -> None:
        self.source = source
        self.table_name = sanitize_table_name(source.topic)
        self.channel = BatchChannel(queue_capacity)
        self.fetcher = Fetcher(source, self.channel)
        self.persister = Persister(
            output,
            self.table_name,
            policy,
            self.channel,
            commit_every=commit_every,
            trace=trace,
            topic=source.topic,
        )
        self._log = logger.bind(topic=source.topic)

    def stop(self) -> None:
        """Stop fetching; batches already handed off are still persisted."""

        self._log.info("Stop requested", extra={"status": "stopping"})
        self.fetcher.stop()

    def _halt_fetcher(self) -> None:
        self.fetcher.stop()
        self.channel.abort()

    def run(self) -> PipelineResult:
        """
        Run both stages to completion.

        Raises:
            PipelineError: Wrapping the first stage failure. Interrupts such as
                KeyboardInterrupt propagate unwrapped once the fetcher is released.
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kafka-dump-fetcher")
        with executor:
            fetch_future: Future[FetchSummary] = executor.submit(self.fetcher.run)

            try:
                persist_summary = self.persister.run()
            except Exception as exc:
                self._halt_fetcher()
                fetch_error = fetch_future.exception()
                if fetch_error is not None:
                    self._log.warning(
                        "Fetcher also failed: %s", fetch_error, extra={"status": "error"}
                    )
                raise PipelineError("persister", exc) from exc
            except BaseException:
                # The executor joins the fetcher on exit; it must not stay blocked.
                self._halt_fetcher()
                raise

            fetch_error = fetch_future.exception()
            if fetch_error is not None:
                raise PipelineError("fetcher", fetch_error) from fetch_error

        return PipelineResult(fetch=fetch_future.result(), persist=persist_summary)


def run_pipeline(
    settings: GlobalSettings | None = None,
    *,
    trace: TraceSink | None = None,
    source: BatchSource | None = None,
    handle_signals: bool = False,
) -> PipelineResult:
    """
    Dump ``settings.topic`` into ``settings.output``.

    Args:
        settings: Run configuration (defaults to the cached global settings)
        trace: Sink for per-record trace lines (defaults to stdout)
        source: Batch source to use instead of a Kafka :class:`TopicReader`
        handle_signals: Stop fetching on SIGINT/SIGTERM instead of dying
    """
    settings = settings or get_settings()
    if not settings.topic:
        raise ConfigurationError("No topic configured")

    if source is not None:
        return _run(source, settings, trace, handle_signals)

    with TopicReader(settings.topic, settings) as reader:
        return _run(reader, settings, trace, handle_signals)


def _run(
    source: BatchSource,
    settings: GlobalSettings,
    trace: TraceSink | None,
    handle_signals: bool,
) -> PipelineResult:
    pipeline = IngestPipeline(
        source,
        settings.output,
        policy=PersistencePolicy.from_flag(settings.compact),
        queue_capacity=settings.queue_capacity,
        commit_every=settings.commit_every,
        trace=trace,
    )
    if not handle_signals:
        return pipeline.run()

    shutdown = install_signal_handlers(pipeline.stop)
    try:
        return pipeline.run()
    finally:
        shutdown.restore()
