"""Core interfaces defining the brokerage/market-data gateway contract."""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from core.clock import MarketClock


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def closing_side(self) -> OrderSide:
        """Order side that flattens a position held on this side."""

        return OrderSide.SELL if self is PositionSide.LONG else OrderSide.BUY


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


@dataclass(slots=True)
class Bar:
    open: float
    close: float
    timestamp: dt.datetime


@dataclass(slots=True)
class Account:
    equity: float
    buying_power: float
    portfolio_value: float


@dataclass(slots=True)
class Position:
    """Read-only snapshot of a brokerage position."""

    symbol: str
    side: PositionSide
    quantity: int
    market_value: float = 0.0


@dataclass(slots=True)
class PendingOrder:
    """Order command built by the engine, submitted once and then discarded."""

    symbol: str
    quantity: int
    side: OrderSide
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[float] = None
    time_in_force: str = "day"


@dataclass(slots=True)
class OpenOrder:
    id: str
    symbol: str
    side: Optional[OrderSide] = None
    quantity: float = 0.0
    status: str = "new"


class Gateway(ABC):
    """Capability interface over the brokerage and its market data feed.

    Query methods raise ``TransientFetchFailure``; ``create_order`` raises
    ``OrderRejected`` when the broker refuses the order.
    """

    @abstractmethod
    async def get_clock(self) -> MarketClock:
        """Return the current market clock/session state."""

    @abstractmethod
    async def get_bars(self, symbol: str, timeframe: str, limit: int) -> List[Bar]:
        """Return up to ``limit`` most recent bars for ``symbol``, oldest first."""

    @abstractmethod
    async def get_account(self) -> Account:
        """Fetch account equity and buying power."""

    @abstractmethod
    async def get_positions(self) -> List[Position]:
        """Fetch current open positions."""

    @abstractmethod
    async def get_open_orders(self) -> List[OpenOrder]:
        """Fetch orders that are still working at the broker."""

    @abstractmethod
    async def cancel_order(self, order_id: str) -> None:
        """Cancel the order identified by ``order_id``."""

    @abstractmethod
    async def create_order(self, order: PendingOrder) -> OpenOrder:
        """Submit ``order`` and return the broker's acknowledgement."""


class Strategy(ABC):
    """A strategy driven by the session loop."""

    name: str = "strategy"
    universe: Sequence[str] = ()

    @abstractmethod
    async def prepare(self) -> None:
        """Warm up once per session, right after the market opens."""

    @abstractmethod
    async def rebalance(self) -> object:
        """Run one steady-state cycle."""


__all__ = [
    "Account",
    "Bar",
    "Gateway",
    "OpenOrder",
    "OrderSide",
    "OrderType",
    "PendingOrder",
    "Position",
    "PositionSide",
    "Strategy",
]
