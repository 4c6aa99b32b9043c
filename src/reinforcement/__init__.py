"""Activity reinforcement with diminishing returns."""

from .consistency_tracker import ConsistencyTracker
from .models import ComponentDelta, ConsistencyStreak, ReinforcementResult
from .reinforcement_engine import ReinforcementEngine

__all__ = [
    "ComponentDelta",
    "ConsistencyStreak",
    "ConsistencyTracker",
    "ReinforcementEngine",
    "ReinforcementResult",
]
