"""Kafka consumer configuration helpers."""

from __future__ import annotations

from typing import Any

from ..utils.config import GlobalSettings


def build_common_kafka_config(settings: GlobalSettings) -> dict[str, Any]:
    """Build base Kafka client configuration: brokers, client id and security."""

    tuning = settings.kafka
    config: dict[str, Any] = {
        "bootstrap.servers": ",".join(settings.brokers),
        "client.id": settings.client_id,
    }

    if tuning.security_protocol:
        config["security.protocol"] = tuning.security_protocol

    if tuning.sasl_mechanism:
        config["sasl.mechanism"] = tuning.sasl_mechanism

    if tuning.sasl_username:
        config["sasl.username"] = tuning.sasl_username

    if tuning.sasl_password:
        config["sasl.password"] = tuning.sasl_password

    return config


def build_consumer_config(settings: GlobalSettings) -> dict[str, Any]:
    """Return Kafka consumer configuration for dumping a topic from the beginning."""

    tuning = settings.kafka
    config = build_common_kafka_config(settings)
    config["group.id"] = settings.client_id

    # Partitions without a committed offset start from the oldest retained message.
    config["auto.offset.reset"] = "earliest"
    config["enable.auto.commit"] = False
    config["enable.auto.offset.store"] = True
    # End-of-topic is detected from partition EOF events.
    config["enable.partition.eof"] = True

    config["fetch.wait.max.ms"] = tuning.fetch_max_wait_ms
    config["fetch.min.bytes"] = tuning.fetch_min_bytes
    config["max.partition.fetch.bytes"] = tuning.max_partition_fetch_bytes
    config["fetch.max.bytes"] = tuning.fetch_max_bytes

    return config
