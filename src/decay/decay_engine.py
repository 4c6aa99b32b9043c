# src/decay/decay_engine.py
"""Per-sub-component exponential decay."""
import logging
import math
from datetime import datetime, timedelta

from src.config.settings import DecaySettings
from src.decay.models import DecayResult, DecayState
from src.models.errors import clock_skew_notice

logger = logging.getLogger(__name__)

SECONDS_PER_WEEK = 7 * 24 * 3600


class DecayEngine:
    """Applies Component(t) = Component(t0) × e^(−λ×Δt) per sub-component.

    Each sub-component keeps its own timer, so reinforcing press activity
    resets press decay without touching SERP decay. Δt is measured from the
    sub-component's DecayState rather than a shared clock, and is the real
    elapsed time: a late or missed tick simply decays over a longer Δt.
    Exponential decay composes, so splitting an interval across ticks gives
    the same result as one long step.
    """

    def __init__(self, settings: DecaySettings | None = None):
        """Initialize the decay engine.

        Args:
            settings: Decay constants. Defaults to DecaySettings().
        """
        self._settings = settings or DecaySettings()

    def rate_for(self, component: str, sub_component: str) -> float:
        """Weekly decay constant λ for a sub-component."""
        return self._settings.rate_for(component, sub_component)

    @staticmethod
    def decay_factor(rate_per_week: float, elapsed: timedelta, multiplier: float = 1.0) -> float:
        """Return e^(−λ × multiplier × weeks); non-positive elapsed gives 1.0."""
        weeks = elapsed.total_seconds() / SECONDS_PER_WEEK
        if weeks <= 0:
            return 1.0
        return math.exp(-rate_per_week * multiplier * weeks)

    def apply(
        self,
        sub_values: dict[str, dict[str, float]],
        states: dict[str, DecayState],
        now: datetime,
        multiplier: float = 1.0,
    ) -> DecayResult:
        """Decay every sub-component up to now.

        Args:
            sub_values: Component -> {sub-metric -> current value}.
            states: 'component.sub' -> DecayState. Updated in place.
            now: Evaluation time.
            multiplier: Scales every λ (negative momentum uses 1.5).

        Returns:
            DecayResult with the decayed values.
        """
        result = DecayResult(values={})

        for component, subs in sub_values.items():
            decayed: dict[str, float] = {}
            for sub_component, value in subs.items():
                key = f"{component}.{sub_component}"
                state = states.get(key)
                if state is None:
                    state = DecayState(component=component, sub_component=sub_component)
                    states[key] = state

                reference = state.reference_time
                factor = 1.0
                if reference is None:
                    state.decayed_through = now
                elif reference > now:
                    skew = (reference - now).total_seconds()
                    logger.warning(f"Clock skew on {key}: reference {skew:.0f}s in the future, treating as zero decay")
                    result.notices.append(clock_skew_notice(now, key, skew))
                else:
                    factor = self.decay_factor(
                        self.rate_for(component, sub_component), now - reference, multiplier
                    )
                    state.decayed_through = now

                decayed[sub_component] = value * factor
                result.factors[key] = factor
            result.values[component] = decayed

        return result
