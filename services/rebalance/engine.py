"""Long-short rebalance cycle: Rank -> Bucketize -> Reconcile -> BatchOrder."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from core.config import StrategyConfig
from core.interfaces import Gateway, OrderSide, Strategy
from core.logging import with_trace
from services.rebalance.batch import BatchOrderEngine
from services.rebalance.bucketizer import Bucketizer
from services.rebalance.orders import OrderSubmitter
from services.rebalance.prices import PriceSampler
from services.rebalance.ranker import Ranker
from services.rebalance.reconciler import PositionReconciler
from services.rebalance.types import Buckets, CycleReport


class Rebalancer(Strategy):
    """130/30 long-short equity strategy over a fixed symbol universe."""

    name = "long-short"

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
        self.log = logger or logging.getLogger("longshort.rebalance")
        self.submitter = submitter or OrderSubmitter(gateway)
        self.sampler = PriceSampler(gateway, timeframe=config.timeframe)
        self.ranker = Ranker(self.sampler, self.universe)
        self.bucketizer = Bucketizer(
            gateway,
            self.sampler,
            fraction=config.bucket_fraction,
            short_ratio=config.short_ratio,
        )
        self.reconciler = PositionReconciler(gateway, self.submitter)
        self.batch = BatchOrderEngine(self.submitter, self.sampler)
        self.blacklist: Set[str] = set()
        self.buckets: Optional[Buckets] = None

    async def rerank(self) -> Buckets:
        ranked = await self.ranker.rank(self.config.lookback_bars)
        self.buckets = await self.bucketizer.bucketize(ranked)
        return self.buckets

    async def prepare(self) -> None:
        await self.rerank()

    async def rebalance(self) -> CycleReport:
        trace = with_trace()
        self.log.debug("rebalance.cycle.start", extra=trace)
        buckets = await self.rerank()
        self.log.info(
            "rebalance.buckets",
            extra={**trace, "long": buckets.long.symbols or None, "short": buckets.short.symbols or None},
        )

        self.blacklist.clear()
        await self.reconciler.reconcile(buckets, self.blacklist)

        long_batch, short_batch = await asyncio.gather(
            self.batch.send_batch(
                buckets.long.target_quantity, buckets.long.symbols, OrderSide.BUY, self.blacklist
            ),
            self.batch.send_batch(
                buckets.short.target_quantity, buckets.short.symbols, OrderSide.SELL, self.blacklist
            ),
        )
        long_comp, short_comp = await asyncio.gather(
            self.batch.compensate(
                long_batch, buckets.long.target_quantity, buckets.long.target_amount, OrderSide.BUY
            ),
            self.batch.compensate(
                short_batch, buckets.short.target_quantity, buckets.short.target_amount, OrderSide.SELL
            ),
        )
        report = CycleReport(
            buckets=buckets,
            blacklist=set(self.blacklist),
            long_batch=long_batch,
            short_batch=short_batch,
            long_compensation=long_comp,
            short_compensation=short_comp,
        )
        self.log.info(
            "rebalance.cycle.done",
            extra={
                **trace,
                "reconciled": sorted(report.blacklist),
                "long_executed": long_batch.executed,
                "long_incomplete": long_batch.incomplete,
                "short_executed": short_batch.executed,
                "short_incomplete": short_batch.incomplete,
            },
        )
        return report
