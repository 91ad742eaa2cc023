"""SQLAlchemy engine helpers for the SQLite output file."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StoreError
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"stage": "persister"})

# Files SQLite may leave next to the database between runs.
_SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


def reset_output(path: str | Path) -> bool:
    """
    Remove any previous output database at ``path`` along with its sidecar files.

    Returns:
        True if a previous database file was removed
    """
    output = Path(path)
    existed = output.exists()
    try:
        output.unlink(missing_ok=True)
        for suffix in _SIDECAR_SUFFIXES:
            Path(f"{output}{suffix}").unlink(missing_ok=True)
    except OSError as exc:
        raise StoreError(f"Unable to truncate previous output '{output}': {exc}") from exc

    if existed:
        logger.info("Removed previous output %s", output, extra={"status": "truncated"})
    return existed


def create_output_engine(path: str | Path, *, echo: bool = False) -> Engine:
    """Instantiate a SQLAlchemy engine on the SQLite file at ``path``."""

    output = Path(path)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            f"sqlite:///{output}",
            echo=echo,
            future=True,
        )
    except (OSError, SQLAlchemyError) as exc:
        raise StoreError(f"Unable to open output database '{output}': {exc}") from exc
