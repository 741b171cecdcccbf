"""Series data providers."""
from .base import BaseProvider
from .fred import FREDProvider

__all__ = ["BaseProvider", "FREDProvider"]
