"""Schemas package initialization."""
from .records import Batch, PersistencePolicy, Record, sanitize_table_name

__all__ = [
    "Batch",
    "PersistencePolicy",
    "Record",
    "sanitize_table_name",
]
