"""Price sampling helpers built on gateway bars."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from core.interfaces import Bar, Gateway


def percent_change(bars: Sequence[Bar]) -> float:
    """(last close - first open) / first open; 0.0 without bars or a zero open."""

    if not bars:
        return 0.0
    first_open = float(bars[0].open)
    if first_open == 0:
        return 0.0
    return (float(bars[-1].close) - first_open) / first_open


class PriceSampler:
    def __init__(
        self,
        gateway: Gateway,
        *,
        timeframe: str = "1Min",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gateway = gateway
        self.timeframe = timeframe
        self.log = logger or logging.getLogger("longshort.prices")

    async def bars(self, symbol: str, limit: int) -> List[Bar]:
        return list(await self.gateway.get_bars(symbol, self.timeframe, limit))

    async def percent_change(self, symbol: str, lookback_bars: int) -> float:
        bars = await self.bars(symbol, lookback_bars)
        if not bars:
            self.log.debug("prices.no_bars", extra={"symbol": symbol})
        return percent_change(bars)

    async def latest_close(self, symbol: str) -> float:
        bars = await self.bars(symbol, 1)
        if not bars:
            self.log.debug("prices.no_bars", extra={"symbol": symbol})
            return 0.0
        return float(bars[-1].close)

    async def total_price(self, symbols: Sequence[str]) -> List[float]:
        """Latest close per symbol, 0.0 where the fetch failed or returned nothing."""

        async def _one(symbol: str) -> float:
            try:
                return await self.latest_close(symbol)
            except Exception as exc:
                self.log.error("prices.fetch.error", extra={"symbol": symbol, "error": str(exc)})
                return 0.0

        return list(await asyncio.gather(*(_one(symbol) for symbol in symbols)))
