"""Messaging utilities for reading a Kafka topic."""

from .config import build_common_kafka_config, build_consumer_config
from .consumer import TopicReader

__all__ = [
    "TopicReader",
    "build_common_kafka_config",
    "build_consumer_config",
]
