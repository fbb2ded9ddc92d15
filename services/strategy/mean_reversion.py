"""Mean-reversion strategy against a running average of minute closes."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.config import StrategyConfig
from core.errors import TransientFetchFailure
from core.interfaces import Account, Gateway, OrderSide, OrderType, Position, PositionSide, Strategy
from services.rebalance.orders import OrderSubmitter
from services.rebalance.prices import PriceSampler


@dataclass(slots=True)
class Quote:
    average: float
    price: float


@dataclass(slots=True)
class Decision:
    symbol: str
    side: OrderSide
    quantity: int
    price: float


def running_average(closes: List[float]) -> float:
    return sum(closes) / len(closes) if closes else 0.0


def decide(
    symbol: str,
    quote: Quote,
    position: Optional[Position],
    account: Account,
    *,
    position_scale: float = 200.0,
) -> Optional[Decision]:
    """Pick the one order (if any) that moves ``symbol`` toward its target value.

    Above the average a held long is sold off. Below it the target value grows
    with the discount to the average; buys are capped by buying power and sells
    never exceed the held quantity.
    """

    price = quote.price
    if price <= 0 or quote.average <= 0:
        return None
    held = position.quantity if position and position.side is PositionSide.LONG else 0
    market_value = position.market_value if position and position.side is PositionSide.LONG else 0.0

    if price > quote.average:
        if held > 0:
            return Decision(symbol, OrderSide.SELL, held, price)
        return None
    if price < quote.average:
        share = (quote.average - price) / price * position_scale
        amount_to_add = account.portfolio_value * share - market_value
        if amount_to_add > 0:
            amount_to_add = min(amount_to_add, account.buying_power)
            quantity = math.floor(amount_to_add / price)
            return Decision(symbol, OrderSide.BUY, quantity, price) if quantity > 0 else None
        quantity = min(math.floor(-amount_to_add / price), held)
        return Decision(symbol, OrderSide.SELL, quantity, price) if quantity > 0 else None
    return None


class MeanReversionStrategy(Strategy):
    name = "mean-reversion"

    def __init__(
        self,
        gateway: Gateway,
        config: StrategyConfig,
        *,
        submitter: Optional[OrderSubmitter] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self.universe = list(config.universe)
        self.submitter = submitter or OrderSubmitter(gateway)
        self.sampler = PriceSampler(gateway, timeframe=config.timeframe)
        self.quotes: Dict[str, Quote] = {}
        self.log = logger or logging.getLogger("longshort.mean_reversion")

    async def _quote(self, symbol: str) -> None:
        try:
            bars = await self.sampler.bars(symbol, self.config.average_bars)
        except Exception as exc:
            self.log.error("meanrev.bars.error", extra={"symbol": symbol, "error": str(exc)})
            self.quotes.pop(symbol, None)
            return
        if len(bars) < self.config.average_bars:
            self.log.debug("meanrev.not_enough_bars", extra={"symbol": symbol, "bars": len(bars)})
            self.quotes.pop(symbol, None)
            return
        closes = [float(bar.close) for bar in bars]
        self.quotes[symbol] = Quote(average=running_average(closes), price=closes[-1])

    async def refresh_quotes(self) -> Dict[str, Quote]:
        await asyncio.gather(*(self._quote(symbol) for symbol in self.universe))
        return dict(self.quotes)

    async def prepare(self) -> None:
        await self.refresh_quotes()

    async def rebalance(self) -> List[Decision]:
        await self.refresh_quotes()
        try:
            positions = {p.symbol: p for p in await self.gateway.get_positions()}
            account = await self.gateway.get_account()
        except TransientFetchFailure as exc:
            self.log.error("meanrev.snapshot.error", extra={"error": str(exc)})
            return []

        decisions: List[Decision] = []
        for symbol, quote in self.quotes.items():
            decision = decide(
                symbol,
                quote,
                positions.get(symbol),
                account,
                position_scale=self.config.position_scale,
            )
            if decision is not None:
                decisions.append(decision)
        await asyncio.gather(
            *(
                self.submitter.submit(
                    d.symbol,
                    d.quantity,
                    d.side,
                    order_type=OrderType.LIMIT,
                    limit_price=round(d.price, 2),
                )
                for d in decisions
            )
        )
        self.log.info(
            "meanrev.cycle.done",
            extra={"orders": [f"{d.side.value}:{d.symbol}:{d.quantity}" for d in decisions]},
        )
        return decisions
