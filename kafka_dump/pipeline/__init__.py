"""Fetcher → bounded channel → persister ingest pipeline."""

from .channel import BatchChannel
from .coordinator import IngestPipeline, PipelineResult, run_pipeline
from .fetcher import BatchSource, Fetcher, FetchSummary
from .persister import Persister, PersistSummary

__all__ = [
    "BatchChannel",
    "BatchSource",
    "FetchSummary",
    "Fetcher",
    "IngestPipeline",
    "PersistSummary",
    "Persister",
    "PipelineResult",
    "run_pipeline",
]
