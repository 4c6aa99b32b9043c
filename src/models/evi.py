# src/models/evi.py
"""Inbound models consumed by the EVI engine.

Activity and shock producers, as well as signal providers, live outside this
package. Everything they hand over is validated here before it reaches the
pipeline.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def ensure_utc(timestamp: datetime) -> datetime:
    """Return a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class ComponentType(str, Enum):
    """Top-level EVI drivers."""

    VISIBILITY = "visibility"
    AUTHORITY = "authority"
    MOMENTUM = "momentum"


class Pillar(str, Enum):
    """Workstreams that produce activity."""

    PR = "pr"
    CONTENT = "content"
    SEO = "seo"


class ActivityType(str, Enum):
    """Kinds of reinforcing activity."""

    PRESS_PLACEMENT = "press_placement"
    JOURNALIST_ENGAGEMENT = "journalist_engagement"
    CONTENT_PUBLISHED = "content_published"
    EXPERT_CONTENT = "expert_content"
    SEO_OPTIMIZATION = "seo_optimization"
    SCHEMA_DEPLOYED = "schema_deployed"
    BACKLINK_EARNED = "backlink_earned"
    AI_CITATION = "ai_citation"


class ShockDirection(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ShockCategory(str, Enum):
    """Discrete shock classes, each with its own magnitude range and decay."""

    TIER1_MEDIA_WIN = "tier1_media_win"
    VIRAL_COVERAGE = "viral_coverage"
    AI_CITATION_BREAKOUT = "ai_citation_breakout"
    CRISIS = "crisis"
    ALGORITHM_UPDATE = "algorithm_update"
    COMPETITOR_MOVE = "competitor_move"


class ActivityEvent(BaseModel):
    """A unit of reinforcing work, delivered at-least-once."""

    idempotency_key: str = Field(min_length=1)
    org_id: str = Field(min_length=1)
    pillars: list[Pillar] = Field(min_length=1)
    type: ActivityType
    magnitude: float = Field(default=1.0, ge=0.0)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ShockEvent(BaseModel):
    """A discrete high-magnitude occurrence.

    magnitude_seed selects a point inside the category's magnitude range
    (0 = low end, 1 = high end). decay_rate overrides the category default:
    it is the daily decay constant for positive shocks and the daily
    recovery rate for negative ones.
    """

    id: str = Field(min_length=1)
    org_id: str = Field(min_length=1)
    category: ShockCategory
    direction: ShockDirection
    magnitude_seed: float = Field(default=0.5, ge=0.0, le=1.0)
    decay_rate: Optional[float] = Field(default=None, gt=0.0, lt=1.0)
    response_active: bool = False
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RawSignal(BaseModel):
    """One raw sub-metric reading.

    value is None when the provider could not produce a reading this cycle.
    baseline is the tracked denominator for count-style metrics (for
    ai_presence: the number of relevant queries).
    """

    value: Optional[float] = None
    baseline: Optional[float] = None
    allow_out_of_range: bool = False


class SignalBatch(BaseModel):
    """Everything a provider reports for one org at one observation time.

    counters carries raw volumes (backlinks, citation_sources,
    press_mentions, citation_source_diversity) that feed the anti-gaming
    scan rather than the score itself.
    """

    org_id: str = Field(min_length=1)
    observed_at: datetime
    signals: dict[str, RawSignal] = Field(default_factory=dict)
    counters: dict[str, float] = Field(default_factory=dict)

    @field_validator("observed_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)
