# src/forecast/forecast_engine.py
"""Scenario forecasts from a snapshot and planned actions."""
import logging
import math
from datetime import datetime, timezone
from typing import Any

from src.config.settings import ForecastSettings
from src.forecast.models import ActionCertainty, ActionContribution, Forecast, PlannedAction
from src.models.errors import ForecastInputInvalid

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("expected_driver_lift", "driver_weight", "success_probability")


def _number(action_id: str, entry: dict, name: str) -> float:
    if name not in entry or entry[name] is None:
        raise ForecastInputInvalid(action_id, f"missing {name}")
    value = entry[name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ForecastInputInvalid(action_id, f"{name} is not numeric: {value!r}")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise ForecastInputInvalid(action_id, f"{name} is not finite")
    return value


def parse_action(entry: dict[str, Any] | PlannedAction) -> PlannedAction:
    """Validate one planned-action entry.

    Args:
        entry: A PlannedAction or a mapping with the same fields.

    Returns:
        A validated PlannedAction.

    Raises:
        ForecastInputInvalid: Missing or non-numeric fields, probability or
            weight outside [0, 1], negative lift, unknown certainty.
    """
    if isinstance(entry, PlannedAction):
        entry = {
            "id": entry.id,
            "certainty": entry.certainty,
            "driver": entry.driver,
            "expected_driver_lift": entry.expected_driver_lift,
            "driver_weight": entry.driver_weight,
            "success_probability": entry.success_probability,
            "scheduled_step": entry.scheduled_step,
        }

    action_id = str(entry.get("id") or "<unnamed>")
    try:
        certainty = ActionCertainty(entry.get("certainty", ActionCertainty.PLANNED))
    except ValueError:
        raise ForecastInputInvalid(action_id, f"unknown certainty {entry.get('certainty')!r}")

    lift, weight, probability = (_number(action_id, entry, name) for name in NUMERIC_FIELDS)
    if lift < 0:
        raise ForecastInputInvalid(action_id, "expected_driver_lift must be non-negative")
    if not 0.0 <= weight <= 1.0:
        raise ForecastInputInvalid(action_id, "driver_weight must be within [0, 1]")
    if not 0.0 <= probability <= 1.0:
        raise ForecastInputInvalid(action_id, "success_probability must be within [0, 1]")

    step = entry.get("scheduled_step", 1)
    if isinstance(step, bool) or not isinstance(step, int) or step < 1:
        raise ForecastInputInvalid(action_id, f"scheduled_step must be a positive integer: {step!r}")

    return PlannedAction(
        id=action_id,
        certainty=certainty,
        driver=str(entry.get("driver", "")),
        expected_driver_lift=lift,
        driver_weight=weight,
        success_probability=probability,
        scheduled_step=step,
    )


class ForecastEngine:
    """Projects low, expected and high EVI trajectories.

    For n = 1..horizon with reference horizon N:
        low(n)      = EVI × low_retention^(n/N)      + Σ confirmed effects × confirmed_factor
        expected(n) = EVI × expected_retention^(n/N) + Σ planned effects × success_rate
        high(n)     = EVI × high_retention^(n/N)     + Σ opportunity effects × opportunity_factor

    where effect = lift × weight × probability and only actions with
    scheduled_step <= n count. Confirmed actions are also planned, planned
    actions are also opportunities, and the factors satisfy
    confirmed_factor <= success_rate <= opportunity_factor, so
    low <= expected <= high at every step. Values are clamped to [0, 100].
    """

    def __init__(self, settings: ForecastSettings | None = None):
        """Initialize the forecast engine.

        Args:
            settings: Retention and scenario factors.
        """
        self._settings = settings or ForecastSettings()

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(100.0, value))

    def baseline(self, evi: float, retention: float, step: int) -> float:
        return evi * retention ** (step / self._settings.reference_horizon)

    def forecast(
        self,
        org_id: str,
        evi: float,
        base_timestamp: datetime,
        actions: list[dict[str, Any] | PlannedAction],
        horizon: int,
    ) -> Forecast:
        """Produce the scenario trajectories.

        Args:
            org_id: Org being forecast.
            evi: EVI of the starting snapshot.
            base_timestamp: Timestamp of the starting snapshot.
            actions: Planned actions (dicts or PlannedAction).
            horizon: Number of steps, 1..max_horizon.

        Returns:
            Forecast with per-step bands and per-action contributions.

        Raises:
            ForecastInputInvalid: For any malformed action entry.
            ValueError: For a horizon outside 1..max_horizon.
        """
        s = self._settings
        if horizon < 1 or horizon > s.max_horizon:
            raise ValueError(f"horizon must be within 1..{s.max_horizon}, got {horizon}")

        parsed = [parse_action(entry) for entry in actions]

        contributions = []
        for action in parsed:
            effect = action.effect
            contributions.append(
                ActionContribution(
                    action_id=action.id,
                    certainty=action.certainty,
                    scheduled_step=action.scheduled_step,
                    effect=effect,
                    low=effect * s.confirmed_factor if action.certainty == ActionCertainty.CONFIRMED else 0.0,
                    expected=effect * s.success_rate if action.certainty != ActionCertainty.OPPORTUNITY else 0.0,
                    high=effect * s.opportunity_factor,
                )
            )

        low, expected, high = [], [], []
        for n in range(1, horizon + 1):
            in_effect = [c for c in contributions if c.scheduled_step <= n]
            low.append(self._clamp(self.baseline(evi, s.low_retention, n) + sum(c.low for c in in_effect)))
            expected.append(
                self._clamp(self.baseline(evi, s.expected_retention, n) + sum(c.expected for c in in_effect))
            )
            high.append(self._clamp(self.baseline(evi, s.high_retention, n) + sum(c.high for c in in_effect)))

        logger.info(
            f"Forecast for {org_id}: {horizon} steps, {len(parsed)} actions, "
            f"step {horizon} band {low[-1]:.1f}/{expected[-1]:.1f}/{high[-1]:.1f}"
        )
        return Forecast(
            org_id=org_id,
            base_evi=evi,
            base_timestamp=base_timestamp,
            horizon=horizon,
            low=low,
            expected=expected,
            high=high,
            contributions=contributions,
            generated_at=datetime.now(timezone.utc),
        )
