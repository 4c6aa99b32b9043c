"""EVI engine: pipeline, tenancy, scheduling and forecasts."""

from .event_bus import SnapshotEventBus
from .evi_engine import EVIEngine
from .forecast_service import ForecastService
from .models import EngineState, SnapshotComputed, TickResult
from .pipeline import PipelineOutcome, ScoringPipeline
from .scheduler import TickScheduler

__all__ = [
    "EVIEngine",
    "EngineState",
    "ForecastService",
    "PipelineOutcome",
    "ScoringPipeline",
    "SnapshotComputed",
    "SnapshotEventBus",
    "TickResult",
    "TickScheduler",
]
