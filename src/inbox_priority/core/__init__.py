"""Core utilities for configuration, logging, models, and interfaces."""

from .config import AppSettings, BatchSettings, ScoringSettings, load_app_settings
from .interfaces import MessageNotFoundError, ScoringError
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "BatchSettings",
    "MessageNotFoundError",
    "ScoringError",
    "ScoringSettings",
    "configure_logging",
    "load_app_settings",
]
