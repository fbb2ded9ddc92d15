"""Momentum ranking of the symbol universe."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from services.rebalance.prices import PriceSampler
from services.rebalance.types import SymbolScore


class Ranker:
    """Scores every symbol by percent change and sorts ascending (worst first)."""

    def __init__(
        self,
        sampler: PriceSampler,
        universe: Sequence[str],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.sampler = sampler
        self.universe = list(universe)
        self.scores: List[SymbolScore] = [SymbolScore(symbol=symbol) for symbol in self.universe]
        self._order: Dict[str, int] = {symbol: idx for idx, symbol in enumerate(self.universe)}
        self.log = logger or logging.getLogger("longshort.ranker")

    async def _score(self, score: SymbolScore, lookback_bars: int) -> None:
        try:
            score.percent_change = await self.sampler.percent_change(score.symbol, lookback_bars)
        except Exception as exc:
            score.percent_change = 0.0
            self.log.error("rank.fetch.error", extra={"symbol": score.symbol, "error": str(exc)})

    async def rank(self, lookback_bars: int = 10) -> List[SymbolScore]:
        # Ties must resolve by universe order, not by the previous pass's ranking.
        self.scores.sort(key=lambda s: self._order[s.symbol])
        await asyncio.gather(*(self._score(score, lookback_bars) for score in self.scores))
        self.scores.sort(key=lambda s: s.percent_change)
        self.log.debug("rank.done", extra={"order": [s.symbol for s in self.scores]})
        return list(self.scores)
