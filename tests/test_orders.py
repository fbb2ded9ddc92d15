import asyncio

from core.interfaces import OpenOrder, OrderSide, OrderType
from services.rebalance.orders import OrderSubmitter
from tests.fakes.fake_gateway import FakeGateway


def _run(coro):
    return asyncio.run(coro)


def test_non_positive_quantity_is_noop_success():
    gateway = FakeGateway()
    submitter = OrderSubmitter(gateway)

    assert _run(submitter.submit("AAPL", 0, OrderSide.BUY)) is True
    assert _run(submitter.submit("AAPL", -3, OrderSide.SELL)) is True
    assert gateway.calls == []


def test_rejection_reports_failure_without_raising():
    gateway = FakeGateway()
    gateway.rejected.add("AAPL")
    submitter = OrderSubmitter(gateway)

    assert _run(submitter.submit("AAPL", 5, OrderSide.BUY)) is False
    assert submitter.outstanding == {}


def test_limit_order_fields_forwarded():
    gateway = FakeGateway()
    submitter = OrderSubmitter(gateway)

    _run(submitter.submit("MSFT", 2, OrderSide.BUY, order_type=OrderType.LIMIT, limit_price=101.25))

    order = gateway.orders[0]
    assert order.order_type is OrderType.LIMIT
    assert order.limit_price == 101.25
    assert submitter.outstanding == {"MSFT": ["order-1"]}


def test_cancel_outstanding_only_touches_tracked_open_orders():
    gateway = FakeGateway()
    gateway.open_orders.append(OpenOrder(id="manual", symbol="SPY"))
    submitter = OrderSubmitter(gateway)

    async def scenario():
        await submitter.submit("AAPL", 1, OrderSide.BUY)
        await submitter.submit("MSFT", 1, OrderSide.BUY)
        # order-2 filled in the meantime
        gateway.open_orders = [o for o in gateway.open_orders if o.id != "order-2"]
        return await submitter.cancel_outstanding()

    assert _run(scenario()) == 1
    assert gateway.cancels == ["order-1"]
    assert submitter.outstanding == {}
    assert _run(submitter.cancel_outstanding()) == 0
