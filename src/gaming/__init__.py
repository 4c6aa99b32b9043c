"""Anti-gaming guard."""

from .anti_gaming_guard import COUNTER_PATTERNS, AntiGamingGuard
from .models import (
    CounterSample,
    FlagOverride,
    GamingFlag,
    GamingScanResult,
    PatternType,
    QuarantinedSignal,
    QuarantineStatus,
)

__all__ = [
    "AntiGamingGuard",
    "COUNTER_PATTERNS",
    "CounterSample",
    "FlagOverride",
    "GamingFlag",
    "GamingScanResult",
    "PatternType",
    "QuarantineStatus",
    "QuarantinedSignal",
]
