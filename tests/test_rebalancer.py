import asyncio

from core.config import StrategyConfig
from core.interfaces import OrderSide, PositionSide
from services.rebalance.engine import Rebalancer
from tests.fakes.fake_gateway import FakeGateway


def _run(coro):
    return asyncio.run(coro)


def _gateway():
    gateway = FakeGateway(equity=100_000.0)
    gateway.set_move("A", 100.0, 95.0)
    gateway.set_move("B", 100.0, 99.0)
    gateway.set_move("C", 100.0, 102.0)
    gateway.set_move("D", 100.0, 108.0)
    return gateway


def _config(**kwargs):
    return StrategyConfig(universe=["A", "B", "C", "D"], **kwargs)


def test_cycle_from_flat_book_opens_both_buckets():
    gateway = _gateway()
    report = _run(Rebalancer(gateway, _config()).rebalance())

    assert report.buckets.short.symbols == ["A"]
    assert report.buckets.long.symbols == ["D"]
    assert {(o.symbol, o.side, o.quantity) for o in gateway.orders} == {
        ("D", OrderSide.BUY, 1203),
        ("A", OrderSide.SELL, 315),
    }
    assert report.long_compensation is None
    assert report.short_compensation is None


def test_cycle_reconciles_before_batching_and_skips_reconciled():
    gateway = _gateway()
    gateway.hold("D", PositionSide.LONG, 1000)
    gateway.hold("B", PositionSide.LONG, 50)
    strategy = Rebalancer(gateway, _config())

    report = _run(strategy.rebalance())

    assert report.blacklist == {"D"}
    assert [(o.side, o.quantity) for o in gateway.orders_for("D")] == [(OrderSide.BUY, 203)]
    assert [(o.side, o.quantity) for o in gateway.orders_for("B")] == [(OrderSide.SELL, 50)]
    assert report.long_batch.executed == []
    first_batch = gateway.calls.index("create_order:A")
    assert gateway.calls.index("get_positions") < first_batch


def test_blacklist_cleared_each_cycle():
    gateway = _gateway()
    gateway.hold("D", PositionSide.LONG, 1203)
    strategy = Rebalancer(gateway, _config())
    _run(strategy.rebalance())
    assert strategy.blacklist == {"D"}

    gateway.positions.clear()
    gateway.orders.clear()
    report = _run(strategy.rebalance())

    assert report.blacklist == set()
    assert [(o.side, o.quantity) for o in gateway.orders_for("D")] == [(OrderSide.BUY, 1203)]


def test_cycle_compensates_executed_symbols_when_one_order_fails():
    gateway = FakeGateway(equity=100_000.0)
    gateway.set_move("A", 100.0, 90.0)
    gateway.set_move("B", 100.0, 95.0)
    gateway.set_move("C", 100.0, 98.0)
    gateway.set_move("D", 10.0, 10.5)
    gateway.set_move("E", 20.0, 22.0)
    gateway.set_move("F", 30.0, 36.0)
    gateway.rejected.add("F")
    config = StrategyConfig(universe=["A", "B", "C", "D", "E", "F"], bucket_fraction=0.5)

    report = _run(Rebalancer(gateway, config).rebalance())

    assert report.buckets.long.symbols == ["D", "E", "F"]
    assert report.buckets.long.target_quantity == 1897
    assert report.long_batch.executed == ["D", "E"]
    assert report.long_batch.incomplete == ["F"]
    # floor(130000 / (10.5 + 22)) = 4000, so D and E each get 4000 - 1897 more.
    assert report.long_compensation.executed == ["D", "E"]
    for symbol in ("D", "E"):
        assert [(o.side, o.quantity) for o in gateway.orders_for(symbol)] == [
            (OrderSide.BUY, 1897),
            (OrderSide.BUY, 2103),
        ]
    assert len(gateway.orders_for("F")) == 1
    assert report.short_compensation is None
    assert {o.quantity for o in gateway.orders if o.side is OrderSide.SELL} == {106}
