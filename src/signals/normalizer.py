# src/signals/normalizer.py
"""Signal normalizer: raw sub-metric readings to 0-100 values."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from src.models.errors import EngineNotice, InvalidSignalRange, stale_signal_notice
from src.models.evi import RawSignal
from src.signals.contracts import DEFAULT_CONTRACTS, MetricContract, MetricDomain

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    """Outcome of normalizing one signal batch.

    Attributes:
        values: Sub-metric name -> normalized value (fresh and stale).
        fresh: Names normalized from a reading in this batch.
        stale: Names served from their last-known value.
        notices: StaleSignalWarning notices for the stale names.
    """

    values: dict[str, float] = field(default_factory=dict)
    fresh: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    notices: list[EngineNotice] = field(default_factory=list)


class SignalNormalizer:
    """Maps raw sub-metric readings onto 0-100 using per-metric contracts.

    Out-of-domain readings raise InvalidSignalRange unless the reading
    carries allow_out_of_range, in which case the value is clamped. Missing
    readings fall back to the last-known normalized value and are reported
    as stale; zero is never substituted.
    """

    def __init__(self, contracts: dict[str, MetricContract] | None = None):
        self._contracts = contracts or DEFAULT_CONTRACTS

    @property
    def contracts(self) -> dict[str, MetricContract]:
        return self._contracts

    def normalize(self, name: str, raw: RawSignal) -> float:
        """Normalize a single reading.

        Args:
            name: Sub-metric name.
            raw: Raw reading with a non-None value.

        Returns:
            Normalized value in [0, 100].

        Raises:
            KeyError: If no contract exists for the metric.
            InvalidSignalRange: If the value is outside the declared domain.
        """
        contract = self._contracts[name]
        value = float(raw.value)
        if math.isnan(value) or math.isinf(value):
            raise InvalidSignalRange(name, value, contract.lower, contract.upper)

        below = value < contract.lower
        above = contract.upper is not None and value > contract.upper
        if below or above:
            if not raw.allow_out_of_range:
                raise InvalidSignalRange(name, value, contract.lower, contract.upper)
            value = contract.lower if below else contract.upper

        if contract.domain in (MetricDomain.PERCENTAGE, MetricDomain.SCORE):
            normalized = value
        elif contract.domain == MetricDomain.RATIO:
            normalized = value * 100.0
        elif contract.domain == MetricDomain.DELTA:
            normalized = (value + 100.0) / 2.0
        elif contract.domain == MetricDomain.LOG_COUNT:
            normalized = math.log10(value + 1.0) * contract.log_scale
        else:
            baseline = raw.baseline if raw.baseline is not None else contract.default_baseline
            if baseline is None or baseline <= 0:
                raise InvalidSignalRange(f"{name}.baseline", baseline or 0.0, 0.0, None)
            if contract.bounded_by_baseline and value > baseline:
                if not raw.allow_out_of_range:
                    raise InvalidSignalRange(name, value, contract.lower, baseline)
                value = baseline
            normalized = value / baseline * 100.0

        return max(0.0, min(100.0, normalized))

    def normalize_batch(
        self,
        signals: dict[str, RawSignal],
        last_known: dict[str, float],
        observed_at: datetime,
        withheld: dict[str, str] | None = None,
    ) -> NormalizationResult:
        """Normalize every contracted sub-metric for one batch.

        Args:
            signals: Raw readings keyed by sub-metric name.
            last_known: Previously normalized values keyed by sub-metric name.
            observed_at: Batch observation time, stamped on notices.
            withheld: Sub-metrics held back this cycle (name -> reason),
                e.g. quarantined readings.

        Returns:
            NormalizationResult. Metrics with neither a reading nor a
            last-known value are absent from values.

        Raises:
            InvalidSignalRange: On the first out-of-domain reading.
        """
        withheld = withheld or {}
        result = NormalizationResult()

        for name in signals:
            if name not in self._contracts:
                logger.warning(f"Ignoring signal with no normalization contract: {name}")

        for name in self._contracts:
            raw = signals.get(name)
            reason = withheld.get(name)
            if reason is None and raw is not None and raw.value is not None:
                result.values[name] = self.normalize(name, raw)
                result.fresh.append(name)
                continue

            if name in last_known:
                result.values[name] = last_known[name]
                result.stale.append(name)
                result.notices.append(
                    stale_signal_notice(observed_at, name, reason or "missing")
                )
                logger.warning(f"Stale signal {name}: {reason or 'missing'}, using last-known value")

        return result
