"""Command-line entry points."""

from .dump import dump_topic

__all__ = ["dump_topic"]
