# src/scoring/composite_scorer.py
"""Composite EVI from the three component calculators."""
from src.config.settings import WeightSettings
from src.scoring.component_calculator import ComponentCalculator
from src.scoring.models import ComponentScore, CompositeScore


class CompositeScorer:
    """Combines Visibility, Authority and Momentum into the EVI.

    EVI = V × 0.40 + A × 0.35 + M × 0.25 with the default weights, clamped
    to [0, 100].

    Attributes:
        calculators: Component name -> ComponentCalculator.
        composite_weights: Component name -> top-level weight.
    """

    def __init__(self, weights: WeightSettings | None = None):
        """Initialize the scorer.

        Args:
            weights: Weight tables. Defaults to WeightSettings().
        """
        weights = weights or WeightSettings()
        self._composite_weights = dict(weights.composite)
        self._calculators = {
            component: ComponentCalculator(component, weights.for_component(component))
            for component in self._composite_weights
        }

    @property
    def calculators(self) -> dict[str, ComponentCalculator]:
        return self._calculators

    @property
    def composite_weights(self) -> dict[str, float]:
        return dict(self._composite_weights)

    def combine(self, visibility: float, authority: float, momentum: float) -> float:
        """Weighted sum of component scores, clamped to [0, 100]."""
        raw = (
            visibility * self._composite_weights["visibility"]
            + authority * self._composite_weights["authority"]
            + momentum * self._composite_weights["momentum"]
        )
        return min(100.0, max(0.0, raw))

    def score(self, sub_values: dict[str, dict[str, float]]) -> CompositeScore:
        """Score every component and combine them.

        Args:
            sub_values: Component name -> {sub-metric name -> normalized value}.

        Returns:
            CompositeScore with the full component breakdown.

        Raises:
            IncompleteComponentInput: From the first component missing inputs.
        """
        components: dict[str, ComponentScore] = {
            name: calculator.calculate(sub_values.get(name, {}))
            for name, calculator in self._calculators.items()
        }
        weighted = {
            name: components[name].value * weight
            for name, weight in self._composite_weights.items()
        }
        evi = self.combine(
            components["visibility"].value,
            components["authority"].value,
            components["momentum"].value,
        )
        return CompositeScore(evi=evi, components=components, weighted=weighted)

    def recommend_focus_driver(self, composite: CompositeScore) -> str:
        """Return the component with the largest EVI upside.

        Upside is (100 - score) × weight: the driver scoring lowest relative
        to its weight gives the most EVI per point gained.
        """
        headroom = {
            name: (100.0 - composite.components[name].value) * weight
            for name, weight in self._composite_weights.items()
        }
        return max(headroom, key=lambda name: headroom[name])
