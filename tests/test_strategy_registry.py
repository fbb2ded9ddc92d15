import pytest

from core.config import StrategyConfig
from services.rebalance.engine import Rebalancer
from services.strategy.mean_reversion import MeanReversionStrategy
from services.strategy.registry import default_registry
from tests.fakes.fake_gateway import FakeGateway


def test_resolve_by_name_and_number():
    registry = default_registry()

    assert registry.resolve("long-short").name == "long-short"
    assert registry.resolve("1").name == "long-short"
    assert registry.resolve(" 2 ").name == "mean-reversion"
    assert registry.resolve("Mean-Reversion").name == "mean-reversion"


@pytest.mark.parametrize("key", ["0", "3", "momentum", ""])
def test_unknown_strategy(key):
    with pytest.raises(KeyError):
        default_registry().resolve(key)


def test_build_and_enumerate():
    registry = default_registry()
    config = StrategyConfig(universe=["AAPL"])

    assert isinstance(registry.build("1", FakeGateway(), config), Rebalancer)
    assert isinstance(registry.build("mean-reversion", FakeGateway(), config), MeanReversionStrategy)
    assert registry.enumerate().splitlines() == [
        "1. Long Short Equity (long-short)",
        "2. Mean Reversion (mean-reversion)",
    ]
