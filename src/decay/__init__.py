"""Exponential decay of component values."""

from .decay_engine import DecayEngine
from .models import DecayResult, DecayState

__all__ = ["DecayEngine", "DecayResult", "DecayState"]
