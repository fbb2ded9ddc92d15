"""Position reconciliation against the current long/short buckets."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set

from core.errors import TransientFetchFailure
from core.interfaces import Gateway, OrderSide, Position, PositionSide
from services.rebalance.orders import OrderSubmitter
from services.rebalance.types import Buckets


class Action(str, Enum):
    LIQUIDATE = "liquidate"
    FLIP_TO_SHORT = "flip_to_short"
    FLIP_TO_LONG = "flip_to_long"
    ADJUST_SHORT = "adjust_short"
    ADJUST_LONG = "adjust_long"


@dataclass(slots=True)
class Correction:
    """The single corrective order a position needs this cycle."""

    symbol: str
    action: Action
    quantity: int
    side: OrderSide
    reconciled: bool = False


def plan_correction(position: Position, buckets: Buckets) -> Correction:
    """Decide what to do with one held position.

    Positions outside both buckets are flattened. Positions on the wrong side
    are closed so the batch pass can reopen them. Positions already on the
    right side are trimmed or topped up to the bucket's target and marked
    reconciled.
    """

    symbol = position.symbol
    held = abs(int(position.quantity))
    in_long = symbol in buckets.long.symbols
    in_short = symbol in buckets.short.symbols

    if not in_long and not in_short:
        return Correction(symbol, Action.LIQUIDATE, held, position.side.closing_side)
    if not in_long:
        if position.side is PositionSide.LONG:
            return Correction(symbol, Action.FLIP_TO_SHORT, held, OrderSide.SELL)
        diff = held - buckets.short.target_quantity
        # Positive diff means overshorted: buy some back.
        side = OrderSide.BUY if diff > 0 else OrderSide.SELL
        return Correction(symbol, Action.ADJUST_SHORT, abs(diff), side, reconciled=True)
    if position.side is PositionSide.SHORT:
        return Correction(symbol, Action.FLIP_TO_LONG, held, OrderSide.BUY)
    diff = held - buckets.long.target_quantity
    side = OrderSide.SELL if diff > 0 else OrderSide.BUY
    return Correction(symbol, Action.ADJUST_LONG, abs(diff), side, reconciled=True)


class PositionReconciler:
    def __init__(
        self,
        gateway: Gateway,
        submitter: OrderSubmitter,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gateway = gateway
        self.submitter = submitter
        self.log = logger or logging.getLogger("longshort.reconciler")

    async def _apply(self, position: Position, buckets: Buckets, blacklist: Set[str]) -> None:
        correction = plan_correction(position, buckets)
        self.log.debug(
            "reconcile.position",
            extra={
                "symbol": correction.symbol,
                "action": correction.action.value,
                "held": position.quantity,
                "held_side": position.side.value,
                "order_quantity": correction.quantity,
                "order_side": correction.side.value,
            },
        )
        if correction.quantity > 0:
            ok = await self.submitter.submit(correction.symbol, correction.quantity, correction.side)
            if not ok:
                self.log.error(
                    "reconcile.order_failed",
                    extra={"symbol": correction.symbol, "action": correction.action.value},
                )
        if correction.reconciled:
            blacklist.add(correction.symbol)

    async def reconcile(
        self,
        buckets: Buckets,
        blacklist: Optional[Set[str]] = None,
        positions: Optional[List[Position]] = None,
    ) -> Set[str]:
        """Issue corrective orders for every held position; return the blacklist."""

        blacklist = blacklist if blacklist is not None else set()
        if positions is None:
            try:
                positions = await self.gateway.get_positions()
            except TransientFetchFailure as exc:
                self.log.error("reconcile.positions.error", extra={"error": str(exc)})
                return blacklist

        async def _guarded(position: Position) -> None:
            try:
                await self._apply(position, buckets, blacklist)
            except Exception as exc:
                self.log.error(
                    "reconcile.position.error",
                    extra={"symbol": position.symbol, "error": str(exc)},
                )

        await asyncio.gather(*(_guarded(position) for position in positions))
        self.log.info("reconcile.done", extra={"positions": len(positions), "reconciled": sorted(blacklist)})
        return blacklist
