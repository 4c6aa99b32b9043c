# src/config/settings.py
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


WEIGHT_TOLERANCE = 1e-6


def _check_sums_to_one(name: str, weights: dict[str, float]) -> None:
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"{name} weights must sum to 1.0, got {total:.6f}")
    negative = [k for k, v in weights.items() if v < 0]
    if negative:
        raise ValueError(f"{name} weights must be non-negative: {negative}")


class SystemConfig(BaseModel):
    name: str = "Earned Visibility Index Engine"
    version: str = "1.0.0"


class WeightSettings(BaseModel):
    """Composite and per-component weight tables."""

    composite: dict[str, float] = Field(
        default_factory=lambda: {
            "visibility": 0.40,
            "authority": 0.35,
            "momentum": 0.25,
        }
    )
    visibility: dict[str, float] = Field(
        default_factory=lambda: {
            "ai_presence": 0.35,
            "press_coverage": 0.25,
            "serp_coverage": 0.25,
            "snippets": 0.15,
        }
    )
    authority: dict[str, float] = Field(
        default_factory=lambda: {
            "citation_quality": 0.30,
            "domain_authority": 0.25,
            "journalist_match": 0.20,
            "schema_coverage": 0.15,
            "eeat_density": 0.10,
        }
    )
    momentum: dict[str, float] = Field(
        default_factory=lambda: {
            "citation_velocity": 0.30,
            "sov_change": 0.25,
            "content_velocity": 0.20,
            "topic_growth": 0.15,
            "ranking_trajectory": 0.10,
        }
    )

    @model_validator(mode="after")
    def validate_weights(self) -> "WeightSettings":
        """Every weight table must sum to 1.0."""
        expected = {"visibility", "authority", "momentum"}
        if set(self.composite) != expected:
            raise ValueError(f"composite weights must cover exactly {sorted(expected)}")
        _check_sums_to_one("composite", self.composite)
        for component in sorted(expected):
            _check_sums_to_one(component, self.for_component(component))
        return self

    def for_component(self, component: str) -> dict[str, float]:
        """Return the sub-weight table for a component name."""
        return getattr(self, component)


class DecaySettings(BaseModel):
    """Weekly decay constants keyed by 'component.sub_component'."""

    rates_per_week: dict[str, float] = Field(
        default_factory=lambda: {
            "visibility.ai_presence": 0.025,
            "visibility.press_coverage": 0.10,
            "visibility.serp_coverage": 0.05,
            "visibility.snippets": 0.05,
            "authority.citation_quality": 0.015,
            "authority.domain_authority": 0.008,
            "authority.journalist_match": 0.10,
            "authority.schema_coverage": 0.008,
            "authority.eeat_density": 0.015,
            "momentum.citation_velocity": 0.20,
            "momentum.sov_change": 0.20,
            "momentum.content_velocity": 0.20,
            "momentum.topic_growth": 0.20,
            "momentum.ranking_trajectory": 0.20,
        }
    )
    default_rate_per_week: float = Field(default=0.05, gt=0, le=1.0)

    @field_validator("rates_per_week")
    @classmethod
    def validate_rates(cls, v: dict[str, float]) -> dict[str, float]:
        for key, rate in v.items():
            if "." not in key:
                raise ValueError(f"Decay key '{key}' must be 'component.sub_component'")
            if rate < 0:
                raise ValueError(f"Decay rate for '{key}' must be non-negative")
        return v

    def rate_for(self, component: str, sub_component: str) -> float:
        return self.rates_per_week.get(
            f"{component}.{sub_component}", self.default_rate_per_week
        )


class ComponentCurve(BaseModel):
    """Parameters of ΔComponent = k × ln(1 + activity_level × s)."""

    k: float = Field(gt=0)
    s: float = Field(gt=0)


class ReinforcementSettings(BaseModel):
    """Settings for activity reinforcement."""

    curves: dict[str, ComponentCurve] = Field(
        default_factory=lambda: {
            "visibility": ComponentCurve(k=6.0, s=0.5),
            "authority": ComponentCurve(k=4.0, s=0.4),
            "momentum": ComponentCurve(k=8.0, s=0.6),
        }
    )
    cross_pillar_bonus: float = Field(default=0.15, ge=0, le=0.5)
    max_pillars: int = Field(default=3, ge=1, le=3)
    consistency_step: float = Field(default=0.1, ge=0, le=0.5)
    consistency_max_weeks: int = Field(default=12, ge=1, le=52)

    # activity type -> component -> reinforced sub-components
    reinforcement_map: dict[str, dict[str, list[str]]] = Field(
        default_factory=lambda: {
            "press_placement": {
                "visibility": ["press_coverage"],
                "authority": ["journalist_match"],
                "momentum": ["sov_change"],
            },
            "journalist_engagement": {
                "authority": ["journalist_match"],
            },
            "content_published": {
                "visibility": ["serp_coverage"],
                "momentum": ["content_velocity", "topic_growth"],
            },
            "expert_content": {
                "authority": ["eeat_density"],
                "momentum": ["content_velocity"],
            },
            "seo_optimization": {
                "visibility": ["serp_coverage", "snippets"],
                "momentum": ["ranking_trajectory"],
            },
            "schema_deployed": {
                "authority": ["schema_coverage"],
                "visibility": ["snippets"],
            },
            "backlink_earned": {
                "authority": ["domain_authority", "citation_quality"],
            },
            "ai_citation": {
                "visibility": ["ai_presence"],
                "authority": ["citation_quality"],
                "momentum": ["citation_velocity"],
            },
        }
    )

    @model_validator(mode="after")
    def validate_curves(self) -> "ReinforcementSettings":
        missing = {"visibility", "authority", "momentum"} - set(self.curves)
        if missing:
            raise ValueError(f"Reinforcement curves missing for: {sorted(missing)}")
        return self


class ShockProfile(BaseModel):
    """Magnitude range (EVI points) and daily decay for a shock category."""

    magnitude_min: float = Field(gt=0, le=100)
    magnitude_max: float = Field(gt=0, le=100)
    decay_rate: float = Field(gt=0, lt=1.0)

    @model_validator(mode="after")
    def validate_range(self) -> "ShockProfile":
        if self.magnitude_min > self.magnitude_max:
            raise ValueError("magnitude_min must not exceed magnitude_max")
        return self


class ShockSettings(BaseModel):
    """Settings for the shock event processor."""

    profiles: dict[str, ShockProfile] = Field(
        default_factory=lambda: {
            "tier1_media_win": ShockProfile(magnitude_min=8.0, magnitude_max=15.0, decay_rate=0.05),
            "viral_coverage": ShockProfile(magnitude_min=10.0, magnitude_max=20.0, decay_rate=0.15),
            "ai_citation_breakout": ShockProfile(magnitude_min=5.0, magnitude_max=12.0, decay_rate=0.03),
            "crisis": ShockProfile(magnitude_min=10.0, magnitude_max=25.0, decay_rate=0.02),
            "algorithm_update": ShockProfile(magnitude_min=5.0, magnitude_max=15.0, decay_rate=0.08),
            "competitor_move": ShockProfile(magnitude_min=3.0, magnitude_max=10.0, decay_rate=0.10),
        }
    )
    expiry_threshold: float = Field(default=0.1, gt=0, le=1.0)
    active_window_days: float = Field(default=1.0, gt=0, le=30)
    passive_recovery_rate: float = Field(default=0.02, gt=0, lt=1.0)
    active_recovery_rate: float = Field(default=0.15, gt=0, lt=1.0)


class MomentumSettings(BaseModel):
    """Settings for the negative momentum detector."""

    decay_multiplier: float = Field(default=1.5, ge=1.0, le=3.0)
    reversal_step: float = Field(default=0.2, ge=0, le=1.0)
    lookback_weeks: int = Field(default=12, ge=3, le=52)


class GamingSettings(BaseModel):
    """Settings for the anti-gaming guard."""

    link_spike_threshold: float = Field(default=2.0, gt=0)
    press_surge_threshold: float = Field(default=3.0, gt=0)
    diversity_collapse_threshold: float = Field(default=0.5, gt=0, lt=1.0)
    min_penalty_rate: float = Field(default=0.1, ge=0.1, le=0.5)
    max_penalty_rate: float = Field(default=0.5, ge=0.1, le=0.5)
    severity_step: float = Field(default=0.1, gt=0, le=0.5)
    flag_duration_days: int = Field(default=90, ge=1)
    comparison_window_days: int = Field(default=7, ge=1, le=31)
    corroboration_window_days: int = Field(default=7, ge=1, le=31)
    counter_history_days: int = Field(default=56, ge=7, le=365)

    @model_validator(mode="after")
    def validate_penalty_bounds(self) -> "GamingSettings":
        if self.min_penalty_rate > self.max_penalty_rate:
            raise ValueError("min_penalty_rate must not exceed max_penalty_rate")
        return self


class ForecastSettings(BaseModel):
    """Scenario band parameters for the forecast engine."""

    low_retention: float = Field(default=0.85, gt=0, le=1.0)
    expected_retention: float = Field(default=0.92, gt=0, le=1.0)
    high_retention: float = Field(default=0.98, gt=0, le=1.0)
    confirmed_factor: float = Field(default=0.7, ge=0, le=0.7)
    success_rate: float = Field(default=0.85, ge=0.7, le=1.2)
    opportunity_factor: float = Field(default=1.2, ge=1.2, le=2.0)
    reference_horizon: int = Field(default=4, ge=1, le=52)
    max_horizon: int = Field(default=52, ge=1, le=260)

    @model_validator(mode="after")
    def validate_ordering(self) -> "ForecastSettings":
        if not (self.low_retention <= self.expected_retention <= self.high_retention):
            raise ValueError("Retention factors must satisfy low <= expected <= high")
        return self


class EVISettings(BaseModel):
    """Settings for the whole scoring engine."""

    weights: WeightSettings = Field(default_factory=WeightSettings)
    decay: DecaySettings = Field(default_factory=DecaySettings)
    reinforcement: ReinforcementSettings = Field(default_factory=ReinforcementSettings)
    shocks: ShockSettings = Field(default_factory=ShockSettings)
    momentum: MomentumSettings = Field(default_factory=MomentumSettings)
    gaming: GamingSettings = Field(default_factory=GamingSettings)
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)


class SchedulerSettings(BaseModel):
    """Settings for TickScheduler."""

    enabled: bool = True
    tick_interval_seconds: int = Field(default=86_400, ge=1)
    run_on_start: bool = True


class StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EVI_STORAGE_")

    data_dir: str = "data"
    snapshots_subdir: str = "snapshots"
    profiles_subdir: str = "profiles"


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EVI_PROVIDER_")

    signals_dir: str = "data/signals"


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    evi: EVISettings = Field(default_factory=EVISettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    orgs: list[str] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        data.pop("storage", None)
        data.pop("providers", None)

        return cls(
            **data,
            storage=StorageSettings(),
            providers=ProviderSettings(),
        )
