"""Strategies runnable by the session loop."""

from .mean_reversion import MeanReversionStrategy
from .registry import StrategyRegistry, default_registry

__all__ = ["MeanReversionStrategy", "StrategyRegistry", "default_registry"]
