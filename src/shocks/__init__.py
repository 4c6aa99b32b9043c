"""Shock event overlay."""

from .models import ShockOverlay, ShockRecord, ShockState
from .shock_processor import ShockProcessor

__all__ = [
    "ShockOverlay",
    "ShockProcessor",
    "ShockRecord",
    "ShockState",
]
