"""Negative momentum detection."""

from .negative_momentum import MomentumState, NegativeMomentumDetector

__all__ = ["MomentumState", "NegativeMomentumDetector"]
