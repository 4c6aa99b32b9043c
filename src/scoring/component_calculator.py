# src/scoring/component_calculator.py
"""Weighted-blend calculators for the Visibility, Authority and Momentum drivers."""
from src.models.errors import IncompleteComponentInput
from src.scoring.models import ComponentScore


class ComponentCalculator:
    """Blends normalized sub-metrics into one component score.

    The score is Σ(value_i × weight_i) over a fixed weight table. Every
    sub-metric named in the table is required; extra keys are ignored.

    Attributes:
        component: Component name (visibility, authority, momentum).
        weights: Sub-metric name -> weight, summing to 1.0.
    """

    def __init__(self, component: str, weights: dict[str, float]):
        """Initialize the calculator.

        Args:
            component: Component name.
            weights: Sub-metric weight table.
        """
        self._component = component
        self._weights = dict(weights)

    @property
    def component(self) -> str:
        return self._component

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    @property
    def required_metrics(self) -> list[str]:
        return list(self._weights)

    def calculate(self, values: dict[str, float]) -> ComponentScore:
        """Calculate the component score.

        Args:
            values: Sub-metric name -> normalized value (0-100).

        Returns:
            ComponentScore with per-sub-metric contributions.

        Raises:
            IncompleteComponentInput: If any required sub-metric is absent.
        """
        missing = [name for name in self._weights if values.get(name) is None]
        if missing:
            raise IncompleteComponentInput(self._component, missing)

        inputs = {name: float(values[name]) for name in self._weights}
        contributions = {name: inputs[name] * weight for name, weight in self._weights.items()}
        total = sum(contributions.values())

        return ComponentScore(
            component=self._component,
            value=min(100.0, max(0.0, total)),
            inputs=inputs,
            contributions=contributions,
        )
