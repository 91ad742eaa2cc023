"""Shared fakes and helpers for the kafka_dump test-suite."""
