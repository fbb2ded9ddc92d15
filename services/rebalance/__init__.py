"""Long-short equity rebalance engine."""

from .batch import BatchOrderEngine
from .bucketizer import Bucketizer
from .engine import Rebalancer
from .loop import LoopState, RebalanceLoop
from .market import MarketClockService
from .orders import OrderSubmitter
from .prices import PriceSampler
from .ranker import Ranker
from .reconciler import PositionReconciler
from .types import BatchResult, Bucket, Buckets, CycleReport, SymbolScore

__all__ = [
    "BatchOrderEngine",
    "BatchResult",
    "Bucket",
    "Buckets",
    "Bucketizer",
    "CycleReport",
    "LoopState",
    "MarketClockService",
    "OrderSubmitter",
    "PositionReconciler",
    "PriceSampler",
    "Ranker",
    "RebalanceLoop",
    "Rebalancer",
    "SymbolScore",
]
