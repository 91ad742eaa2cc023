"""Kafka reader that polls every partition of one topic in batches."""

from __future__ import annotations

from typing import Any

from confluent_kafka import OFFSET_STORED, Consumer, KafkaError, KafkaException, TopicPartition

from ..exceptions import TransportError
from ..schemas.records import Batch, Record
from ..utils.config import GlobalSettings, get_settings
from ..utils.logging import setup_logger
from .config import build_consumer_config

logger = setup_logger(__name__, context={"stage": "fetcher"})


class TopicReader:
    """
    Reads one topic across all of its partitions.

    Every partition is assigned explicitly at the stored (committed) offset,
    falling back to the earliest retained message. :meth:`poll` returns an
    empty :class:`Batch` once every partition has reported end-of-partition
    and no further records arrive.
    """

    def __init__(
        self,
        topic: str,
        settings: GlobalSettings | None = None,
        *,
        consumer: Consumer | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.topic = topic
        self._tuning = self.settings.kafka
        self._consumer_config = build_consumer_config(self.settings)
        self._consumer = consumer
        self._assigned: set[int] = set()
        self._at_eof: set[int] = set()
        self._log = logger.bind(topic=topic)

    @property
    def partitions(self) -> list[int]:
        return sorted(self._assigned)

    def _create_consumer(self) -> Consumer:
        try:
            return Consumer(self._consumer_config)
        except KafkaException as exc:
            raise TransportError(f"Failed to construct Kafka consumer: {exc}") from exc

    def open(self) -> TopicReader:
        """Load topic metadata and assign every partition of the topic."""

        if self._consumer is None:
            self._consumer = self._create_consumer()

        try:
            metadata = self._consumer.list_topics(
                self.topic, timeout=self._tuning.metadata_timeout_seconds
            )
        except KafkaException as exc:
            raise TransportError(
                f"Failed to load metadata for topic '{self.topic}': {exc}"
            ) from exc

        topic_metadata = metadata.topics.get(self.topic)
        if topic_metadata is None or topic_metadata.error is not None:
            reason = "not found" if topic_metadata is None else topic_metadata.error
            raise TransportError(f"Topic '{self.topic}' is unavailable: {reason}")
        if not topic_metadata.partitions:
            raise TransportError(f"Topic '{self.topic}' has no partitions")

        partitions = sorted(topic_metadata.partitions)
        try:
            self._consumer.assign(
                [TopicPartition(self.topic, partition, OFFSET_STORED) for partition in partitions]
            )
        except KafkaException as exc:
            raise TransportError(f"Failed to assign partitions of '{self.topic}': {exc}") from exc

        self._assigned = set(partitions)
        self._at_eof.clear()
        self._log.info(
            "Assigned %d partition(s) from brokers %s",
            len(partitions),
            self._consumer_config["bootstrap.servers"],
            extra={"status": "assigned"},
        )
        return self

    def _require_consumer(self) -> Consumer:
        if self._consumer is None or not self._assigned:
            raise TransportError("TopicReader.poll() called before open()")
        return self._consumer

    def _check_error(self, message: Any) -> bool:
        """Return True if ``message`` carries a record, False for skippable events."""

        error = message.error()
        if error is None:
            return True

        if error.code() == KafkaError._PARTITION_EOF:
            self._at_eof.add(message.partition())
            return False

        if not error.fatal() and error.retriable():
            self._log.warning("Retriable Kafka error: %s", error, extra={"status": "retrying"})
            return False

        raise TransportError(f"Kafka error while polling '{self.topic}': {error}")

    def poll(self) -> Batch:
        """
        Return the next batch of records in fetch order.

        Raises:
            TransportError: On any non-retriable consumer error
        """
        consumer = self._require_consumer()

        while True:
            try:
                messages = consumer.consume(
                    num_messages=self._tuning.poll_max_records,
                    timeout=self._tuning.poll_timeout_seconds,
                )
            except KafkaException as exc:
                raise TransportError(f"Failed to poll topic '{self.topic}': {exc}") from exc

            records: list[Record] = []
            for message in messages:
                if not self._check_error(message):
                    continue
                self._at_eof.discard(message.partition())
                records.append(
                    Record.from_message(
                        topic=message.topic(),
                        partition=message.partition(),
                        offset=message.offset(),
                        key=message.key(),
                        value=message.value(),
                    )
                )

            if records:
                return Batch.of(records)

            if self._assigned <= self._at_eof:
                return Batch.empty()

    def commit(self) -> None:
        """
        Synchronously commit the offsets of everything consumed so far.

        Raises:
            TransportError: If the commit is rejected
        """
        consumer = self._require_consumer()
        try:
            consumer.commit(asynchronous=False)
        except KafkaException as exc:
            error = exc.args[0] if exc.args else None
            if isinstance(error, KafkaError) and error.code() == KafkaError._NO_OFFSET:
                return
            raise TransportError(f"Failed to commit offsets for '{self.topic}': {exc}") from exc

    def close(self) -> None:
        if self._consumer is not None:
            self._consumer.close()
            self._consumer = None
        self._assigned.clear()
        self._at_eof.clear()

    def __enter__(self) -> TopicReader:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
