import asyncio

import pytest

from services.rebalance.prices import PriceSampler
from services.rebalance.ranker import Ranker
from tests.fakes.fake_gateway import FakeGateway


def _run(coro):
    return asyncio.run(coro)


def _ranker(gateway, universe):
    return Ranker(PriceSampler(gateway), universe)


def test_rank_orders_ascending_by_percent_change():
    gateway = FakeGateway()
    gateway.set_move("A", 100.0, 95.0)
    gateway.set_move("B", 100.0, 99.0)
    gateway.set_move("C", 100.0, 102.0)
    gateway.set_move("D", 100.0, 108.0)

    ranked = _run(_ranker(gateway, ["D", "B", "A", "C"]).rank(10))

    assert [s.symbol for s in ranked] == ["A", "B", "C", "D"]
    assert [s.percent_change for s in ranked] == pytest.approx([-0.05, -0.01, 0.02, 0.08])


def test_ties_keep_universe_order_across_passes():
    gateway = FakeGateway()
    for symbol in ("X", "Y", "Z"):
        gateway.set_move(symbol, 10.0, 10.0)
    gateway.set_move("Y", 10.0, 9.0)
    ranker = _ranker(gateway, ["X", "Y", "Z"])

    first = _run(ranker.rank())
    assert [s.symbol for s in first] == ["Y", "X", "Z"]

    gateway.set_move("Y", 10.0, 10.0)
    second = _run(ranker.rank())
    assert [s.symbol for s in second] == ["X", "Y", "Z"]


def test_failed_fetch_scores_zero_without_aborting():
    gateway = FakeGateway()
    gateway.set_move("A", 100.0, 90.0)
    gateway.set_move("B", 100.0, 120.0)
    gateway.failing_bars.add("C")

    ranked = _run(_ranker(gateway, ["A", "B", "C"]).rank())

    assert [s.symbol for s in ranked] == ["A", "C", "B"]
    assert ranked[1].percent_change == 0.0


def test_symbol_without_bars_scores_zero():
    gateway = FakeGateway()
    gateway.set_move("A", 100.0, 101.0)

    ranked = _run(_ranker(gateway, ["A", "NOBARS"]).rank())

    assert [s.symbol for s in ranked] == ["NOBARS", "A"]
