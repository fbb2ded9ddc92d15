"""Session state machine driving a strategy on a fixed tick interval."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import math
import time
from enum import Enum
from typing import Callable, Optional

from core.errors import TransientFetchFailure
from core.interfaces import Gateway, Position, Strategy
from core.logging import with_trace
from services.rebalance.market import MarketClockService
from services.rebalance.orders import OrderSubmitter


class LoopState(str, Enum):
    IDLE = "idle"
    WAITING_FOR_OPEN = "waiting_for_open"
    REBALANCING = "rebalancing"
    CLOSING_POSITIONS = "closing_positions"
    SLEEPING_UNTIL_NEXT_SESSION = "sleeping_until_next_session"


class RebalanceLoop:
    """Run ``strategy`` once per tick from market open until the pre-close window.

    Ticks run inline in a single coroutine, so a slow cycle can never overlap the
    next one; slots it overran are skipped rather than queued.
    """

    def __init__(
        self,
        gateway: Gateway,
        strategy: Strategy,
        *,
        submitter: Optional[OrderSubmitter] = None,
        tick_interval_sec: float = 60.0,
        preclose_window_sec: float = 15 * 60,
        open_poll_sec: float = 60.0,
        monotonic: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gateway = gateway
        self.strategy = strategy
        self.submitter = submitter or getattr(strategy, "submitter", None) or OrderSubmitter(gateway)
        self.tick_interval = float(tick_interval_sec)
        self.preclose_window = float(preclose_window_sec)
        self.open_poll = float(open_poll_sec)
        self._monotonic = monotonic
        self.log = logger or logging.getLogger("longshort.loop")
        self.shutdown = asyncio.Event()
        self.market = MarketClockService(gateway, shutdown=self.shutdown)
        self.state = LoopState.IDLE
        self.time_to_close: Optional[dt.timedelta] = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.sessions = 0

    def stop(self) -> None:
        self.shutdown.set()

    def _set_state(self, state: LoopState) -> None:
        if state is not self.state:
            self.log.info("loop.state", extra={"from": self.state.value, "to": state.value})
        self.state = state

    async def _wait_with_shutdown(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return

    async def run(self) -> None:
        """Repeat sessions until :meth:`stop` is called."""

        self.log.info(
            "loop.start",
            extra={"strategy": getattr(self.strategy, "name", type(self.strategy).__name__)},
        )
        while not self.shutdown.is_set():
            try:
                await self.run_session()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.log.exception("loop.session.error", extra={"error": str(exc)})
                await self._wait_with_shutdown(self.tick_interval)
        self.log.info("loop.stop")

    async def run_session(self) -> None:
        """Cancel stale orders, wait for the open, prepare, then tick until close."""

        self._set_state(LoopState.WAITING_FOR_OPEN)
        await self.market.cancel_existing_orders()
        self.log.info("loop.waiting_for_open")
        if not await self.market.await_market_open(self.open_poll):
            return
        # A close time left over from the previous session must not trigger liquidation.
        self.time_to_close = None
        self.sessions += 1
        self.log.info("loop.market_open", extra={"session": self.sessions})
        try:
            await self.strategy.prepare()
        except Exception as exc:
            self.log.exception("loop.prepare.error", extra={"error": str(exc)})

        self._set_state(LoopState.REBALANCING)
        next_tick = self._monotonic() + self.tick_interval
        while not self.shutdown.is_set():
            await self._wait_with_shutdown(next_tick - self._monotonic())
            if self.shutdown.is_set():
                return
            if await self.tick():
                return
            next_tick += self.tick_interval
            now = self._monotonic()
            if now >= next_tick:
                missed = math.floor((now - next_tick) / self.tick_interval) + 1
                self.skipped_ticks += missed
                next_tick += missed * self.tick_interval
                self.log.warning("loop.tick.skipped", extra={"skipped": missed})

    async def _refresh_time_to_close(self) -> Optional[dt.timedelta]:
        try:
            self.time_to_close = await self.market.time_to_close()
        except TransientFetchFailure as exc:
            self.log.error("loop.clock.error", extra={"error": str(exc)})
        return self.time_to_close

    async def tick(self) -> bool:
        """Run one steady-state tick; True when the session has been closed out."""

        self.ticks += 1
        remaining = await self._refresh_time_to_close()
        if remaining is not None and remaining.total_seconds() < self.preclose_window:
            self.log.info(
                "loop.closing_soon",
                extra={"seconds_to_close": remaining.total_seconds()},
            )
            await self.close_positions()
            self._set_state(LoopState.SLEEPING_UNTIL_NEXT_SESSION)
            self.log.info("loop.sleeping", extra={"seconds": self.preclose_window})
            await self._wait_with_shutdown(self.preclose_window)
            self._set_state(LoopState.WAITING_FOR_OPEN)
            return True

        await self.submitter.cancel_outstanding()
        try:
            await self.strategy.rebalance()
        except Exception as exc:
            self.log.exception("loop.tick.error", extra=with_trace({"error": str(exc)}))
        return False

    async def close_positions(self) -> int:
        """Flatten every open position with a full-size opposite-side order."""

        self._set_state(LoopState.CLOSING_POSITIONS)
        try:
            positions = await self.gateway.get_positions()
        except TransientFetchFailure as exc:
            self.log.error("loop.close.positions_error", extra={"error": str(exc)})
            return 0

        async def _close(position: Position) -> bool:
            return await self.submitter.submit(
                position.symbol, abs(int(position.quantity)), position.side.closing_side
            )

        results = await asyncio.gather(*(_close(position) for position in positions))
        closed = sum(1 for ok in results if ok)
        self.log.info("loop.close.done", extra={"positions": len(positions), "closed": closed})
        return closed
