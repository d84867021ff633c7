"""Relationship, content, feature and priority scoring services."""

from inbox_priority.core.interfaces import MessageNotFoundError, ScoringError

from .content import ContentAnalyzer
from .dates import DateparserPhraseParser
from .features import FeatureExtractor
from .priority import PriorityScorer, explain, feature_importance
from .relationship import RelationshipScorer, summarize_history
from .service import PriorityService, build_priority_service

__all__ = [
    "ContentAnalyzer",
    "DateparserPhraseParser",
    "FeatureExtractor",
    "MessageNotFoundError",
    "PriorityScorer",
    "PriorityService",
    "RelationshipScorer",
    "ScoringError",
    "build_priority_service",
    "explain",
    "feature_importance",
    "summarize_history",
]
