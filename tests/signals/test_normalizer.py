# tests/signals/test_normalizer.py
"""Tests for SignalNormalizer."""
import math

import pytest

from src.models.errors import InvalidSignalRange, NoticeKind
from src.models.evi import RawSignal
from src.signals.contracts import DEFAULT_CONTRACTS, MetricDomain
from src.signals.normalizer import SignalNormalizer
from tests.helpers import T0, uniform_signals


class TestNormalizeDomains:
    @pytest.fixture
    def normalizer(self):
        return SignalNormalizer()

    def test_percentage_passes_through(self, normalizer):
        assert normalizer.normalize("serp_coverage", RawSignal(value=42.0)) == 42.0

    def test_ratio_scaled_by_100(self, normalizer):
        assert normalizer.normalize("eeat_density", RawSignal(value=0.35)) == pytest.approx(35.0)

    def test_count_divided_by_baseline(self, normalizer):
        raw = RawSignal(value=30.0, baseline=60.0)
        assert normalizer.normalize("ai_presence", raw) == pytest.approx(50.0)

    def test_count_above_baseline_raises_for_share_metrics(self, normalizer):
        for name in ("ai_presence", "snippets"):
            with pytest.raises(InvalidSignalRange) as exc_info:
                normalizer.normalize(name, RawSignal(value=150.0, baseline=100.0))
            assert exc_info.value.metric == name
            assert exc_info.value.upper == 100.0

    def test_count_above_baseline_override_clamps(self, normalizer):
        raw = RawSignal(value=150.0, baseline=100.0, allow_out_of_range=True)
        assert normalizer.normalize("ai_presence", raw) == 100.0

    def test_unbounded_count_above_baseline_capped_at_100(self, normalizer):
        raw = RawSignal(value=20.0, baseline=8.0)
        assert normalizer.normalize("content_velocity", raw) == 100.0

    def test_count_uses_default_baseline(self, normalizer):
        assert normalizer.normalize("content_velocity", RawSignal(value=4.0)) == pytest.approx(50.0)

    def test_count_without_baseline_raises(self, normalizer):
        with pytest.raises(InvalidSignalRange) as exc_info:
            normalizer.normalize("snippets", RawSignal(value=4.0))
        assert exc_info.value.metric == "snippets.baseline"

    def test_log_count_curve(self, normalizer):
        # log10(99 + 1) × 25 = 50
        assert normalizer.normalize("press_coverage", RawSignal(value=99.0)) == pytest.approx(50.0)

    def test_log_count_saturates(self, normalizer):
        assert normalizer.normalize("press_coverage", RawSignal(value=1e9)) == 100.0

    def test_delta_maps_to_midpoint(self, normalizer):
        assert normalizer.normalize("sov_change", RawSignal(value=0.0)) == 50.0
        assert normalizer.normalize("sov_change", RawSignal(value=-100.0)) == 0.0
        assert normalizer.normalize("sov_change", RawSignal(value=100.0)) == 100.0

    def test_uniform_helper_normalizes_to_level(self, normalizer):
        for name, raw in uniform_signals(65.0).items():
            assert normalizer.normalize(name, raw) == pytest.approx(65.0), name


class TestOutOfRange:
    @pytest.fixture
    def normalizer(self):
        return SignalNormalizer()

    def test_percentage_above_100_raises(self, normalizer):
        with pytest.raises(InvalidSignalRange) as exc_info:
            normalizer.normalize("serp_coverage", RawSignal(value=140.0))
        assert exc_info.value.metric == "serp_coverage"
        assert exc_info.value.upper == 100.0

    def test_negative_count_raises(self, normalizer):
        with pytest.raises(InvalidSignalRange):
            normalizer.normalize("ai_presence", RawSignal(value=-1.0, baseline=10.0))

    def test_ratio_above_one_raises(self, normalizer):
        with pytest.raises(InvalidSignalRange):
            normalizer.normalize("eeat_density", RawSignal(value=1.5))

    def test_nan_raises(self, normalizer):
        with pytest.raises(InvalidSignalRange):
            normalizer.normalize("serp_coverage", RawSignal(value=math.nan))

    def test_override_clamps(self, normalizer):
        raw = RawSignal(value=140.0, allow_out_of_range=True)
        assert normalizer.normalize("serp_coverage", raw) == 100.0

    def test_override_clamps_low(self, normalizer):
        raw = RawSignal(value=-150.0, allow_out_of_range=True)
        assert normalizer.normalize("sov_change", raw) == 0.0

    def test_error_is_evi_error(self):
        from src.models.errors import EVIError

        assert issubclass(InvalidSignalRange, EVIError)


class TestNormalizeBatch:
    @pytest.fixture
    def normalizer(self):
        return SignalNormalizer()

    def test_all_fresh(self, normalizer):
        result = normalizer.normalize_batch(uniform_signals(40.0), {}, T0)

        assert set(result.values) == set(DEFAULT_CONTRACTS)
        assert result.stale == []
        assert result.notices == []

    def test_missing_reading_uses_last_known(self, normalizer):
        signals = uniform_signals(40.0)
        signals["serp_coverage"] = RawSignal(value=None)

        result = normalizer.normalize_batch(signals, {"serp_coverage": 77.0}, T0)

        assert result.values["serp_coverage"] == 77.0
        assert result.stale == ["serp_coverage"]
        assert result.notices[0].kind == NoticeKind.STALE_SIGNAL_WARNING
        assert result.notices[0].details["metric"] == "serp_coverage"

    def test_missing_never_becomes_zero(self, normalizer):
        signals = uniform_signals(40.0)
        del signals["snippets"]

        result = normalizer.normalize_batch(signals, {}, T0)

        assert "snippets" not in result.values

    def test_withheld_reading_uses_last_known(self, normalizer):
        result = normalizer.normalize_batch(
            uniform_signals(40.0),
            {"domain_authority": 55.0},
            T0,
            withheld={"domain_authority": "quarantined:f1"},
        )

        assert result.values["domain_authority"] == 55.0
        assert "domain_authority" in result.stale
        assert result.notices[0].details["reason"] == "quarantined:f1"

    def test_unknown_signal_ignored(self, normalizer):
        signals = uniform_signals(40.0)
        signals["tiktok_views"] = RawSignal(value=1000.0)

        result = normalizer.normalize_batch(signals, {}, T0)

        assert "tiktok_views" not in result.values

    def test_invalid_reading_raises(self, normalizer):
        signals = uniform_signals(40.0)
        signals["journalist_match"] = RawSignal(value=101.0)

        with pytest.raises(InvalidSignalRange):
            normalizer.normalize_batch(signals, {}, T0)


class TestContracts:
    def test_every_weighted_metric_has_contract(self):
        from src.config.settings import WeightSettings

        weights = WeightSettings()
        for component in ("visibility", "authority", "momentum"):
            for name in weights.for_component(component):
                assert DEFAULT_CONTRACTS[name].component == component

    def test_delta_bounds(self):
        contract = DEFAULT_CONTRACTS["topic_growth"]
        assert contract.domain == MetricDomain.DELTA
        assert (contract.lower, contract.upper) == (-100.0, 100.0)
        assert contract.key == "momentum.topic_growth"

    def test_share_counts_bounded_by_baseline(self):
        bounded = {name for name, c in DEFAULT_CONTRACTS.items() if c.bounded_by_baseline}
        assert bounded == {"ai_presence", "snippets"}
