"""SQLite persistence for dumped topics."""

from .base import create_output_engine, reset_output
from .repository import ApplyResult, RecordAction, TopicTableRepository
from .topic_table import build_topic_table

__all__ = [
    "ApplyResult",
    "RecordAction",
    "TopicTableRepository",
    "build_topic_table",
    "create_output_engine",
    "reset_output",
]
