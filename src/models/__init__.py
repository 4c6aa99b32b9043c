"""Shared models for the EVI engine."""

from .errors import (
    EngineNotice,
    EVIError,
    ForecastInputInvalid,
    IncompleteComponentInput,
    InvalidSignalRange,
    NoticeKind,
)
from .evi import (
    ActivityEvent,
    ActivityType,
    ComponentType,
    Pillar,
    RawSignal,
    ShockCategory,
    ShockDirection,
    ShockEvent,
    SignalBatch,
    ensure_utc,
)

__all__ = [
    "ActivityEvent",
    "ActivityType",
    "ComponentType",
    "EVIError",
    "EngineNotice",
    "ForecastInputInvalid",
    "IncompleteComponentInput",
    "InvalidSignalRange",
    "NoticeKind",
    "Pillar",
    "RawSignal",
    "ShockCategory",
    "ShockDirection",
    "ShockEvent",
    "SignalBatch",
    "ensure_utc",
]
