"""Custom exceptions for kafka_dump."""

from __future__ import annotations


class KafkaDumpError(Exception):
    """Base exception for all kafka_dump errors."""

    pass


class ConfigurationError(KafkaDumpError):
    """Raised when configuration is invalid or missing."""

    pass


class TransportError(KafkaDumpError):
    """Raised when the Kafka cluster cannot be polled or offsets cannot be committed."""

    pass


class StoreError(KafkaDumpError):
    """Raised when the SQLite output cannot be created, written or committed."""

    pass


class PipelineAbortedError(KafkaDumpError):
    """Raised when a batch hand-off is attempted on an aborted or closed channel."""

    pass


class PipelineError(KafkaDumpError):
    """Raised by the pipeline coordinator when one of its stages fails."""

    def __init__(self, stage: str, error: BaseException) -> None:
        super().__init__(f"{stage} failed: {error}")
        self.stage = stage
        self.error = error
