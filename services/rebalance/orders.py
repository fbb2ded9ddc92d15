"""Single-order submission with a boolean outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from core.errors import TransientFetchFailure
from core.interfaces import Gateway, OrderSide, OrderType, PendingOrder


class OrderSubmitter:
    """Submit one order at a time; never raises across its boundary.

    Broker ids of accepted orders are remembered until :meth:`cancel_outstanding`
    so the next tick can clear anything still working.
    """

    def __init__(self, gateway: Gateway, *, logger: Optional[logging.Logger] = None) -> None:
        self.gateway = gateway
        self.log = logger or logging.getLogger("longshort.orders")
        self._outstanding: Dict[str, List[str]] = {}

    @property
    def outstanding(self) -> Dict[str, List[str]]:
        return {symbol: list(ids) for symbol, ids in self._outstanding.items()}

    async def submit(
        self,
        symbol: str,
        quantity: int,
        side: OrderSide,
        *,
        order_type: OrderType = OrderType.MARKET,
        limit_price: Optional[float] = None,
    ) -> bool:
        context = {"symbol": symbol, "quantity": quantity, "side": side.value}
        if quantity <= 0:
            self.log.info("order.skipped_non_positive", extra=context)
            return True
        order = PendingOrder(
            symbol=symbol,
            quantity=int(quantity),
            side=side,
            order_type=order_type,
            limit_price=limit_price,
        )
        try:
            ack = await self.gateway.create_order(order)
        except Exception as exc:
            self.log.error("order.failed", extra={**context, "error": str(exc)})
            return False
        if ack.id:
            self._outstanding.setdefault(symbol, []).append(ack.id)
        self.log.info("order.submitted", extra={**context, "order_id": ack.id})
        return True

    async def cancel_outstanding(self) -> int:
        """Cancel the orders placed since the last call that are still open."""

        tracked = {order_id for ids in self._outstanding.values() for order_id in ids}
        self._outstanding.clear()
        if not tracked:
            return 0
        try:
            open_orders = await self.gateway.get_open_orders()
        except TransientFetchFailure as exc:
            self.log.error("order.outstanding.error", extra={"error": str(exc)})
            return 0
        stale = [order.id for order in open_orders if order.id in tracked]

        async def _cancel(order_id: str) -> bool:
            try:
                await self.gateway.cancel_order(order_id)
            except Exception as exc:
                self.log.error("order.cancel.failed", extra={"order_id": order_id, "error": str(exc)})
                return False
            return True

        results = await asyncio.gather(*(_cancel(order_id) for order_id in stale))
        canceled = sum(1 for ok in results if ok)
        if canceled:
            self.log.info("order.outstanding.canceled", extra={"canceled": canceled})
        return canceled
