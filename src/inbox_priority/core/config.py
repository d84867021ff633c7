"""Application configuration models and loader utilities."""

from __future__ import annotations

import math
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field, model_validator


class UserSettings(BaseModel):
    """Identity of the mailbox owner."""

    address: str | None = Field(default=None, description="User's own address")
    vip_senders: list[str] = Field(
        default_factory=list, description="Addresses flagged manually as VIP"
    )

    def is_vip(self, sender: str) -> bool:
        """Return ``True`` when ``sender`` is on the manual VIP list."""
        wanted = sender.strip().lower()
        return any(vip.strip().lower() == wanted for vip in self.vip_senders)


class GateSettings(BaseModel):
    """Thresholds and windows for the deterministic gates."""

    newsletter_threshold: float = Field(default=0.60, ge=0.0, le=1.0)
    calendar_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    otp_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    automation_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    otp_expiry_minutes: int = Field(
        default=15, ge=1, description="Age after which a code counts as expired"
    )
    otp_scan_chars: int = Field(
        default=500, ge=1, description="Body prefix inspected for codes"
    )
    calendar_scan_chars: int = Field(
        default=1500, ge=1, description="Body prefix inspected for invites"
    )


class RelationshipSettings(BaseModel):
    """Weights and curve parameters for sender relationship scoring."""

    lookback_days: int = Field(default=180, ge=1)
    recency_decay_days: float = Field(default=90.0, gt=0.0)
    volume_ramp_count: int = Field(default=5, ge=1)
    volume_plateau_count: int = Field(default=50, ge=1)
    volume_decay_span: int = Field(default=100, ge=1)
    reply_window_days: int = Field(default=7, ge=1)
    reply_frequency_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    two_way_weight: float = Field(default=0.25, ge=0.0, le=1.0)
    recency_weight: float = Field(default=0.20, ge=0.0, le=1.0)
    volume_weight: float = Field(default=0.10, ge=0.0, le=1.0)
    manual_vip_weight: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> RelationshipSettings:
        total = (
            self.reply_frequency_weight
            + self.two_way_weight
            + self.recency_weight
            + self.volume_weight
            + self.manual_vip_weight
        )
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            msg = f"Relationship weights must sum to 1.0, got {total:.4f}"
            raise ValueError(msg)
        return self


class ContentSettings(BaseModel):
    """Limits applied by the content analyzer."""

    deadline_scan_chars: int = Field(
        default=500, ge=1, description="Text prefix searched for free dates"
    )
    max_action_items: int = Field(default=5, ge=1)


class ScoringSettings(BaseModel):
    """Point weights and thresholds of the linear priority model."""

    baseline: float = Field(default=50.0)
    base_confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    newsletter_penalty: float = Field(default=-30.0)
    auto_generated_penalty: float = Field(default=-20.0)
    otp_penalty: float = Field(default=-35.0)
    otp_max_confidence: float = Field(default=0.6, ge=0.0, le=1.0)

    relationship_max: float = Field(default=30.0)
    vip_sender: float = Field(default=15.0)
    explicit_ask: float = Field(default=20.0)
    deadline_bonus: float = Field(default=15.0)
    urgent_deadline_bonus: float = Field(default=25.0)
    urgent_deadline_minutes: int = Field(default=1440)
    urgent_deadline_confidence_boost: float = Field(default=0.1)
    thread_you_owe: float = Field(default=20.0)
    reply_need_max: float = Field(default=25.0)
    reply_need_threshold: float = Field(default=0.5)

    intent_confirm: float = Field(default=10.0)
    intent_request: float = Field(default=5.0)
    intent_schedule: float = Field(default=0.0)
    intent_inform: float = Field(default=-5.0)

    calendar_window_hours: float = Field(default=24.0, gt=0.0)
    calendar_confidence_boost: float = Field(default=0.15)
    security_deadline_minutes: int = Field(default=360)
    security_floor_margin: float = Field(default=5.0)
    security_confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    urgent_threshold: int = Field(default=90)
    important_threshold: int = Field(default=70)
    normal_threshold: int = Field(default=50)
    low_threshold: int = Field(default=30)

    @model_validator(mode="after")
    def _thresholds_descend(self) -> ScoringSettings:
        ordered = (
            self.urgent_threshold,
            self.important_threshold,
            self.normal_threshold,
            self.low_threshold,
        )
        if list(ordered) != sorted(ordered, reverse=True):
            raise ValueError("Category thresholds must be strictly descending")
        return self


class BatchSettings(BaseModel):
    """Concurrency bounds for batch scoring."""

    default_parallelism: int = Field(default=10, ge=1)
    max_parallelism: int = Field(default=50, ge=1)
    timeout_seconds: float | None = Field(
        default=None, gt=0.0, description="Per-message timeout inside a batch"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle brace-style structured logging"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    user: UserSettings = Field(default_factory=UserSettings)
    gates: GateSettings = Field(default_factory=GateSettings)
    relationship: RelationshipSettings = Field(default_factory=RelationshipSettings)
    content: ContentSettings = Field(default_factory=ContentSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "INBOX_PRIORITY_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _normalize_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if value == "":
        return None
    lowercase_value = value.lower()
    if lowercase_value == "true":
        return True
    if lowercase_value == "false":
        return False
    if value.startswith("[") or "," in value:
        return [item.strip() for item in value.strip("[]").split(",") if item.strip()]
    return value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        _merge_into_tree(collected, path, _normalize_value(value))

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "BatchSettings",
    "ContentSettings",
    "GateSettings",
    "LoggingSettings",
    "RelationshipSettings",
    "ScoringSettings",
    "UserSettings",
    "load_app_settings",
]
