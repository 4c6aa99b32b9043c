"""Scenario forecasting."""

from .forecast_engine import ForecastEngine, parse_action
from .models import ActionCertainty, ActionContribution, Forecast, PlannedAction

__all__ = [
    "ActionCertainty",
    "ActionContribution",
    "Forecast",
    "ForecastEngine",
    "PlannedAction",
    "parse_action",
]
