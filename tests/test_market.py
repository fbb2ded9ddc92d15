import asyncio
import datetime as dt

from core.clock import MarketClock
from core.interfaces import OpenOrder
from services.rebalance.market import MarketClockService
from tests.fakes.fake_gateway import FakeGateway, make_clock


def _run(coro):
    return asyncio.run(coro)


def test_clock_from_alpaca_payload_and_derived_fields():
    clock = MarketClock.from_alpaca(
        {
            "timestamp": "2024-01-02T14:00:30Z",
            "is_open": False,
            "next_open": "2024-01-02T14:30:00Z",
            "next_close": "2024-01-02T21:00:00Z",
        }
    )

    assert clock.minutes_until_open == 29
    assert clock.time_to_close == dt.timedelta(hours=6, minutes=59, seconds=30)


def test_time_to_close_is_absolute():
    clock = make_clock(to_close=dt.timedelta(minutes=-5))
    assert clock.time_to_close == dt.timedelta(minutes=5)


def test_await_market_open_polls_until_open():
    gateway = FakeGateway()
    gateway.queue_clocks([make_clock(is_open=False), make_clock(is_open=False), make_clock(is_open=True)])

    async def scenario():
        service = MarketClockService(gateway)
        return await service.await_market_open(poll_sec=0.001)

    assert _run(scenario()) is True
    assert gateway.calls.count("get_clock") == 3


def test_await_market_open_survives_clock_errors_and_honours_shutdown():
    gateway = FakeGateway()
    gateway.fail_clock = True

    async def scenario():
        service = MarketClockService(gateway)

        async def stop_soon():
            await asyncio.sleep(0.01)
            service.shutdown.set()

        stopper = asyncio.create_task(stop_soon())
        opened = await service.await_market_open(poll_sec=0.001)
        await stopper
        return opened

    assert _run(scenario()) is False


def test_cancel_existing_orders_cancels_everything_open():
    gateway = FakeGateway()
    gateway.open_orders = [OpenOrder(id="a", symbol="AAPL"), OpenOrder(id="b", symbol="MSFT")]

    canceled = _run(MarketClockService(gateway).cancel_existing_orders())

    assert canceled == 2
    assert sorted(gateway.cancels) == ["a", "b"]
