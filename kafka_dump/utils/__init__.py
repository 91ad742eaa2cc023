"""Utilities package initialization."""
from .config import (
    GlobalSettings,
    KafkaTuning,
    build_settings,
    get_settings,
    load_yaml_config,
)
from .logging import configure_logging, setup_logger

__all__ = [
    "GlobalSettings",
    "KafkaTuning",
    "build_settings",
    "configure_logging",
    "get_settings",
    "load_yaml_config",
    "setup_logger",
]
