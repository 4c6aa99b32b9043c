"""Raw signal providers."""

from .base import BaseSignalProvider
from .json_provider import JsonFileSignalProvider

__all__ = ["BaseSignalProvider", "JsonFileSignalProvider"]
