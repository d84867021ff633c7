"""Deterministic priority scoring for email."""

from .core import AppSettings, MessageNotFoundError, ScoringError, load_app_settings
from .core.models import (
    BatchReport,
    MessageFeatures,
    PriorityCategory,
    PriorityScore,
    RawMessage,
)
from .intelligence import (
    FeatureExtractor,
    PriorityScorer,
    PriorityService,
    build_priority_service,
    explain,
)

__all__ = [
    "AppSettings",
    "BatchReport",
    "FeatureExtractor",
    "MessageFeatures",
    "MessageNotFoundError",
    "PriorityCategory",
    "PriorityScore",
    "PriorityScorer",
    "PriorityService",
    "RawMessage",
    "ScoringError",
    "build_priority_service",
    "explain",
    "load_app_settings",
]
