"""Name -> builder registry for the strategies the CLI can run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from core.config import StrategyConfig
from core.interfaces import Gateway, Strategy

StrategyBuilder = Callable[[Gateway, StrategyConfig], Strategy]


@dataclass
class StrategySpec:
    name: str
    title: str
    builder: StrategyBuilder


class StrategyRegistry:
    def __init__(self) -> None:
        self._specs: Dict[str, StrategySpec] = {}

    def register(self, name: str, title: str, builder: StrategyBuilder) -> None:
        self._specs[name] = StrategySpec(name=name, title=title, builder=builder)

    def specs(self) -> List[StrategySpec]:
        return list(self._specs.values())

    def resolve(self, key: str) -> StrategySpec:
        """Look a strategy up by name or by its 1-based position in :meth:`specs`."""

        key = key.strip().lower()
        if key in self._specs:
            return self._specs[key]
        if key.isdigit():
            index = int(key) - 1
            specs = self.specs()
            if 0 <= index < len(specs):
                return specs[index]
        raise KeyError(f"unknown strategy: {key!r}")

    def build(self, key: str, gateway: Gateway, config: StrategyConfig) -> Strategy:
        return self.resolve(key).builder(gateway, config)

    def enumerate(self) -> str:
        return "\n".join(f"{idx}. {spec.title} ({spec.name})" for idx, spec in enumerate(self.specs(), 1))


def default_registry() -> StrategyRegistry:
    from services.rebalance.engine import Rebalancer
    from services.strategy.mean_reversion import MeanReversionStrategy

    registry = StrategyRegistry()
    registry.register("long-short", "Long Short Equity", Rebalancer)
    registry.register("mean-reversion", "Mean Reversion", MeanReversionStrategy)
    return registry
