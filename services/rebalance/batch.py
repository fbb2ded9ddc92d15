"""Batch order submission with a compensation pass for partial failures."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import AbstractSet, Optional, Sequence

from core.interfaces import OrderSide
from services.rebalance.orders import OrderSubmitter
from services.rebalance.prices import PriceSampler
from services.rebalance.types import BatchResult


def adjusted_quantity(amount: float, executed_prices: Sequence[float]) -> Optional[int]:
    """floor(amount / sum(prices)) over executed symbols; None when unusable."""

    total = sum(executed_prices)
    if total <= 0:
        return None
    adjusted = math.floor(amount / total)
    return adjusted if adjusted > 0 else None


class BatchOrderEngine:
    def __init__(
        self,
        submitter: OrderSubmitter,
        sampler: PriceSampler,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.submitter = submitter
        self.sampler = sampler
        self.log = logger or logging.getLogger("longshort.batch")

    async def _submit_all(
        self, quantity: int, symbols: Sequence[str], side: OrderSide
    ) -> BatchResult:
        outcomes = await asyncio.gather(
            *(self.submitter.submit(symbol, quantity, side) for symbol in symbols)
        )
        result = BatchResult()
        for symbol, ok in zip(symbols, outcomes):
            (result.executed if ok else result.incomplete).append(symbol)
        return result

    async def send_batch(
        self,
        quantity: int,
        symbols: Sequence[str],
        side: OrderSide,
        blacklist: AbstractSet[str] = frozenset(),
    ) -> BatchResult:
        """Submit ``quantity`` to every symbol that reconciliation did not already fix."""

        pending = [symbol for symbol in symbols if symbol not in blacklist]
        self.log.debug(
            "batch.send",
            extra={"quantity": quantity, "side": side.value, "symbols": pending},
        )
        result = await self._submit_all(quantity, pending, side)
        if result.incomplete:
            self.log.warning(
                "batch.incomplete",
                extra={"side": side.value, "incomplete": result.incomplete, "executed": result.executed},
            )
        return result

    async def compensate(
        self,
        result: BatchResult,
        quantity: int,
        amount: float,
        side: OrderSide,
    ) -> Optional[BatchResult]:
        """Spread the dollars meant for failed symbols over the executed ones.

        Runs only when the batch had both executed and incomplete members. The
        second round goes straight to the executed symbols and is not retried.
        """

        if not result.needs_compensation:
            return None
        prices = await self.sampler.total_price(result.executed)
        adjusted = adjusted_quantity(amount, prices)
        self.log.info(
            "batch.compensate",
            extra={
                "side": side.value,
                "amount": amount,
                "quantity": quantity,
                "adjusted": adjusted,
                "executed": result.executed,
            },
        )
        if adjusted is None:
            return None
        delta = adjusted - quantity
        if delta == 0:
            return BatchResult(executed=list(result.executed))
        # A negative delta means the executed symbols already got too much: trim back.
        order_side = side if delta > 0 else side.opposite
        second = await self._submit_all(abs(delta), result.executed, order_side)
        if second.incomplete:
            self.log.error(
                "batch.compensate.incomplete",
                extra={"side": order_side.value, "incomplete": second.incomplete},
            )
        return second
