"""Market session queries over the gateway clock."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Optional

from core.clock import MarketClock
from core.errors import TransientFetchFailure
from core.interfaces import Gateway


class MarketClockService:
    """Answers open/closed and time-to-close questions for the session loop."""

    def __init__(
        self,
        gateway: Gateway,
        *,
        shutdown: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gateway = gateway
        self.shutdown = shutdown or asyncio.Event()
        self.log = logger or logging.getLogger("longshort.market")

    async def clock(self) -> MarketClock:
        return await self.gateway.get_clock()

    async def is_open(self) -> bool:
        return (await self.clock()).is_open

    async def minutes_until_open(self) -> int:
        return (await self.clock()).minutes_until_open

    async def time_to_close(self) -> dt.timedelta:
        return (await self.clock()).time_to_close

    async def _wait_with_shutdown(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return

    async def await_market_open(self, poll_sec: float = 60.0) -> bool:
        """Block until the market opens; returns False if shutdown was requested first."""

        while not self.shutdown.is_set():
            try:
                clock = await self.clock()
            except TransientFetchFailure as exc:
                self.log.error("market.clock.error", extra={"error": str(exc)})
            else:
                if clock.is_open:
                    return True
                self.log.info(
                    "market.waiting_for_open",
                    extra={"minutes_until_open": clock.minutes_until_open},
                )
            await self._wait_with_shutdown(poll_sec)
        return False

    async def cancel_existing_orders(self) -> int:
        """Cancel every open order at the broker so it cannot eat buying power."""

        try:
            orders = await self.gateway.get_open_orders()
        except TransientFetchFailure as exc:
            self.log.error("market.orders.error", extra={"error": str(exc)})
            return 0

        async def _cancel(order_id: str) -> bool:
            try:
                await self.gateway.cancel_order(order_id)
            except Exception as exc:
                self.log.error("market.cancel.error", extra={"order_id": order_id, "error": str(exc)})
                return False
            return True

        results = await asyncio.gather(*(_cancel(order.id) for order in orders))
        canceled = sum(1 for ok in results if ok)
        self.log.debug("market.orders.canceled", extra={"canceled": canceled, "seen": len(orders)})
        return canceled
