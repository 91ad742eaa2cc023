"""Dump a Kafka topic into a SQLite database."""

__version__ = "0.1.0"
