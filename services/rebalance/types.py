"""Value types produced and consumed by one rebalance cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Set

from core.interfaces import PositionSide


@dataclass(slots=True)
class SymbolScore:
    """Momentum score for one symbol, refreshed in place on every ranking pass."""

    symbol: str
    percent_change: float = 0.0


@dataclass(slots=True)
class Bucket:
    side: PositionSide
    symbols: List[str] = field(default_factory=list)
    target_quantity: int = 0
    target_amount: float = 0.0

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.symbols


@dataclass(slots=True)
class Buckets:
    short: Bucket
    long: Bucket


@dataclass(slots=True)
class BatchResult:
    executed: List[str] = field(default_factory=list)
    incomplete: List[str] = field(default_factory=list)

    @property
    def needs_compensation(self) -> bool:
        return bool(self.executed) and bool(self.incomplete)


@dataclass(slots=True)
class CycleReport:
    """Summary of one Rank -> Bucketize -> Reconcile -> BatchOrder cycle."""

    buckets: Buckets
    blacklist: Set[str]
    long_batch: BatchResult
    short_batch: BatchResult
    long_compensation: Optional[BatchResult] = None
    short_compensation: Optional[BatchResult] = None


__all__ = ["BatchResult", "Bucket", "Buckets", "CycleReport", "SymbolScore"]
