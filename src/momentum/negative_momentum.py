# src/momentum/negative_momentum.py
"""Detection of accelerating EVI decline."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.config.settings import MomentumSettings

logger = logging.getLogger(__name__)

# Deltas that must all be negative and accelerating to raise the flag
ACCELERATION_WINDOW = 3


@dataclass
class MomentumState:
    """Negative-momentum status of an org.

    Attributes:
        flagged: True while decline is accelerating.
        weeks_in_decline: Trailing count of negative weekly deltas.
        decay_multiplier: Factor applied to every λ (1.0 when not flagged).
        reversal_effort_multiplier: 1 + step × weeks_in_decline while
            flagged, 1.0 otherwise.
        flagged_since: When the current flag was raised.
        weekly_deltas: Week-over-week EVI changes, oldest first.
    """

    flagged: bool = False
    weeks_in_decline: int = 0
    decay_multiplier: float = 1.0
    reversal_effort_multiplier: float = 1.0
    flagged_since: datetime | None = None
    weekly_deltas: tuple[float, ...] = ()


class NegativeMomentumDetector:
    """Flags orgs whose weekly EVI losses grow three weeks running.

    Weekly points are sampled from snapshot history: for each week k back
    from now, the latest snapshot at or before now − 7k days. A flag needs
    the last three deltas to be negative with strictly increasing size; the
    first week that breaks the pattern clears it.
    """

    def __init__(self, settings: MomentumSettings | None = None):
        self._settings = settings or MomentumSettings()

    def weekly_points(
        self, history: list[tuple[datetime, float]], now: datetime
    ) -> list[float]:
        """Sample one EVI per week, oldest first.

        Args:
            history: (timestamp, evi) pairs in chronological order.
            now: Evaluation time.

        Returns:
            Weekly EVI values. Weeks before the first snapshot are skipped.
        """
        points: list[float] = []
        for k in range(self._settings.lookback_weeks, -1, -1):
            cutoff = now - timedelta(weeks=k)
            latest = None
            for timestamp, evi in history:
                if timestamp <= cutoff:
                    latest = evi
                else:
                    break
            if latest is not None:
                points.append(latest)
        return points

    def evaluate(
        self,
        history: list[tuple[datetime, float]],
        now: datetime,
        previous: MomentumState | None = None,
    ) -> MomentumState:
        """Evaluate negative momentum at now.

        Args:
            history: (timestamp, evi) snapshot pairs, chronological.
            now: Evaluation time.
            previous: The org's prior state, used to keep flagged_since.

        Returns:
            A new MomentumState.
        """
        points = self.weekly_points(history, now)
        deltas = [b - a for a, b in zip(points, points[1:])]

        weeks_in_decline = 0
        for delta in reversed(deltas):
            if delta < 0:
                weeks_in_decline += 1
            else:
                break

        recent = deltas[-ACCELERATION_WINDOW:]
        flagged = (
            len(recent) == ACCELERATION_WINDOW
            and all(d < 0 for d in recent)
            and all(abs(b) > abs(a) for a, b in zip(recent, recent[1:]))
        )

        if not flagged:
            if previous is not None and previous.flagged:
                logger.info("Negative momentum cleared")
            return MomentumState(weeks_in_decline=weeks_in_decline, weekly_deltas=tuple(deltas))

        was_flagged = previous is not None and previous.flagged
        if not was_flagged:
            logger.warning(
                f"Negative momentum flagged: {weeks_in_decline} weeks in decline, "
                f"last deltas {[round(d, 2) for d in recent]}"
            )
        return MomentumState(
            flagged=True,
            weeks_in_decline=weeks_in_decline,
            decay_multiplier=self._settings.decay_multiplier,
            reversal_effort_multiplier=1.0 + self._settings.reversal_step * weeks_in_decline,
            flagged_since=previous.flagged_since if was_flagged else now,
            weekly_deltas=tuple(deltas),
        )
