"""Long/short bucket selection and 130/30 sizing."""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple

from core.errors import TransientFetchFailure
from core.interfaces import Gateway, PositionSide
from services.rebalance.prices import PriceSampler
from services.rebalance.types import Bucket, Buckets, SymbolScore

log = logging.getLogger("longshort.bucketizer")

DEFAULT_SHORT_RATIO = 0.30


def bucket_size(count: int, fraction: float) -> int:
    """floor(count * fraction), capped at count // 2 so the buckets never overlap."""

    if not 0 < fraction <= 1:
        raise ValueError(f"bucket fraction must be in (0, 1], got {fraction}")
    size = math.floor(count * fraction)
    if 2 * size > count:
        log.warning(
            "bucket.size_capped",
            extra={"requested": size, "capped": count // 2, "universe": count},
        )
        size = count // 2
    return size


def split_ranked(ranked: Sequence[SymbolScore], fraction: float) -> Tuple[list[str], list[str]]:
    """Return (short, long) symbol lists from an ascending ranking."""

    size = bucket_size(len(ranked), fraction)
    if size == 0:
        return [], []
    short = [score.symbol for score in ranked[:size]]
    long = [score.symbol for score in ranked[len(ranked) - size:]]
    return short, long


def allocate(equity: float, short_ratio: float = DEFAULT_SHORT_RATIO) -> Tuple[float, float]:
    """130/30 split: returns (short_amount, long_amount)."""

    short_amount = short_ratio * float(equity)
    return short_amount, float(equity) + short_amount


def shared_quantity(amount: float, prices: Sequence[float], previous: int = 0) -> int:
    """One quantity for every symbol in a bucket: floor(amount / sum(prices)).

    This approximates an equal-dollar split; expensive symbols end up with a
    larger dollar weight. With no usable prices the previous quantity stands.
    """

    total = sum(prices)
    if total <= 0:
        return previous
    return max(0, math.floor(amount / total))


class Bucketizer:
    def __init__(
        self,
        gateway: Gateway,
        sampler: PriceSampler,
        *,
        fraction: float = 0.25,
        short_ratio: float = DEFAULT_SHORT_RATIO,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not 0 < fraction <= 1:
            raise ValueError(f"bucket fraction must be in (0, 1], got {fraction}")
        self.gateway = gateway
        self.sampler = sampler
        self.fraction = fraction
        self.short_ratio = short_ratio
        self.log = logger or log
        # Carried across cycles only as the fallback when a fetch comes back empty.
        self.short_amount = 0.0
        self.long_amount = 0.0
        self.short_quantity = 0
        self.long_quantity = 0

    async def _refresh_amounts(self) -> None:
        try:
            account = await self.gateway.get_account()
        except TransientFetchFailure as exc:
            self.log.error("bucket.account.error", extra={"error": str(exc)})
            return
        self.short_amount, self.long_amount = allocate(account.equity, self.short_ratio)
        self.log.debug(
            "bucket.amounts",
            extra={
                "equity": account.equity,
                "short_amount": self.short_amount,
                "long_amount": self.long_amount,
            },
        )

    async def bucketize(self, ranked: Sequence[SymbolScore]) -> Buckets:
        short_symbols, long_symbols = split_ranked(ranked, self.fraction)
        await self._refresh_amounts()

        long_prices = await self.sampler.total_price(long_symbols)
        self.long_quantity = shared_quantity(self.long_amount, long_prices, self.long_quantity)
        short_prices = await self.sampler.total_price(short_symbols)
        self.short_quantity = shared_quantity(self.short_amount, short_prices, self.short_quantity)

        buckets = Buckets(
            short=Bucket(
                side=PositionSide.SHORT,
                symbols=short_symbols,
                target_quantity=self.short_quantity,
                target_amount=self.short_amount,
            ),
            long=Bucket(
                side=PositionSide.LONG,
                symbols=long_symbols,
                target_quantity=self.long_quantity,
                target_amount=self.long_amount,
            ),
        )
        self.log.info(
            "bucket.done",
            extra={
                "long": long_symbols,
                "short": short_symbols,
                "long_quantity": self.long_quantity,
                "short_quantity": self.short_quantity,
            },
        )
        return buckets
