# src/shocks/shock_processor.py
"""Shock overlay: registration, decay and expiry of discrete events."""
import logging
import math
from datetime import datetime

from src.config.settings import ShockSettings
from src.models.evi import ShockDirection, ShockEvent
from src.shocks.models import ShockOverlay, ShockRecord, ShockState

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600


class ShockProcessor:
    """Registers shocks and computes their decaying overlay on the EVI.

    Shocks decay independently of baseline decay:
        positive: magnitude × e^(−λs × days)
        negative: −magnitude × (1 − r)^days

    A shock is ACTIVE for its first active_window_days, DECAYING after
    that, and EXPIRED once |contribution| drops below expiry_threshold.
    Expired shocks never re-enter the overlay.
    """

    def __init__(self, settings: ShockSettings | None = None):
        """Initialize the processor.

        Args:
            settings: Category profiles and thresholds.
        """
        self._settings = settings or ShockSettings()

    def magnitude(self, event: ShockEvent) -> float:
        """Interpolate the event's magnitude inside its category range."""
        profile = self._settings.profiles[event.category.value]
        span = profile.magnitude_max - profile.magnitude_min
        return profile.magnitude_min + event.magnitude_seed * span

    def resolve_rate(self, event: ShockEvent) -> float:
        """Daily decay constant (positive) or recovery rate (negative)."""
        if event.decay_rate is not None:
            return event.decay_rate
        if event.direction == ShockDirection.POSITIVE:
            return self._settings.profiles[event.category.value].decay_rate
        if event.response_active:
            return self._settings.active_recovery_rate
        return self._settings.passive_recovery_rate

    def register(self, event: ShockEvent) -> ShockRecord:
        """Create the ShockRecord for an incoming event."""
        record = ShockRecord(
            id=event.id,
            org_id=event.org_id,
            category=event.category.value,
            direction=event.direction.value,
            magnitude=self.magnitude(event),
            decay_rate=self.resolve_rate(event),
            occurred_at=event.timestamp,
        )
        record.last_contribution = record.magnitude if record.is_positive else -record.magnitude
        logger.info(
            f"Registered {record.direction} shock {record.id} ({record.category}) "
            f"magnitude {record.magnitude:.2f}, expires in ~{self.predicted_expiry_days(record):.1f} days"
        )
        return record

    def contribution(self, record: ShockRecord, now: datetime) -> float:
        """Signed contribution in EVI points at now.

        Shocks dated after now contribute nothing yet.
        """
        if record.is_expired:
            return 0.0
        days = (now - record.occurred_at).total_seconds() / SECONDS_PER_DAY
        if days < 0:
            return 0.0
        if record.is_positive:
            return record.magnitude * math.exp(-record.decay_rate * days)
        return -record.magnitude * (1.0 - record.decay_rate) ** days

    def predicted_expiry_days(self, record: ShockRecord) -> float:
        """Days after occurrence at which |contribution| falls below the threshold."""
        threshold = self._settings.expiry_threshold
        if record.magnitude <= threshold:
            return 0.0
        if record.is_positive:
            return math.log(record.magnitude / threshold) / record.decay_rate
        return math.log(threshold / record.magnitude) / math.log(1.0 - record.decay_rate)

    def state_at(self, record: ShockRecord, now: datetime) -> ShockState:
        """Lifecycle state at now, without mutating the record."""
        if record.is_expired:
            return ShockState.EXPIRED
        days = (now - record.occurred_at).total_seconds() / SECONDS_PER_DAY
        if days < self._settings.active_window_days:
            return ShockState.ACTIVE
        if abs(self.contribution(record, now)) < self._settings.expiry_threshold:
            return ShockState.EXPIRED
        return ShockState.DECAYING

    def overlay(self, records: list[ShockRecord], now: datetime) -> ShockOverlay:
        """Advance every record to now and sum the live contributions.

        Args:
            records: The org's shock records. Updated in place.
            now: Evaluation time.

        Returns:
            ShockOverlay with per-shock contributions.
        """
        contributions: dict[str, float] = {}
        expired_ids: list[str] = []

        for record in records:
            if record.is_expired:
                continue
            state = self.state_at(record, now)
            if state == ShockState.EXPIRED:
                record.state = ShockState.EXPIRED
                record.expired_at = now
                record.last_contribution = 0.0
                expired_ids.append(record.id)
                logger.info(f"Shock {record.id} expired")
                continue
            record.state = state
            record.last_contribution = self.contribution(record, now)
            contributions[record.id] = record.last_contribution

        return ShockOverlay(
            total=sum(contributions.values()),
            contributions=contributions,
            expired_ids=expired_ids,
        )
