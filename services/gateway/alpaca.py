"""Async gateway over alpaca-py's trading and historical data clients."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
from typing import Any, Callable, Dict, List, Optional, TypeVar

from core.clock import MarketClock
from core.config import AlpacaSettings
from core.errors import OrderRejected, TransientFetchFailure
from core.interfaces import (
    Account,
    Bar,
    Gateway,
    OpenOrder,
    OrderSide,
    OrderType,
    PendingOrder,
    Position,
    PositionSide,
)
from core.rate_limit import backoff_request

T = TypeVar("T")

log = logging.getLogger("longshort.gateway.alpaca")

_TIMEFRAME_RE = re.compile(r"^(\d+)\s*(min|minute|t|hour|h|day|d|week|w|month|m)$", re.IGNORECASE)
_UNIT_MINUTES = {"minute": 1, "hour": 60, "day": 60 * 24, "week": 60 * 24 * 7, "month": 60 * 24 * 31}
_UNIT_ALIASES = {
    "min": "minute",
    "minute": "minute",
    "t": "minute",
    "hour": "hour",
    "h": "hour",
    "day": "day",
    "d": "day",
    "week": "week",
    "w": "week",
    "month": "month",
    "m": "month",
}
# Bars are requested from a window this many times wider than ``limit`` and the
# tail is kept, since the data API pages forward from ``start``.
_LOOKBACK_PADDING = 3
# Floor on the bar count a window covers, so thinly traded symbols still have a latest bar.
_MIN_WINDOW_BARS = 10


def parse_timeframe(value: str) -> tuple[int, str]:
    """Parse ``"1Min"``/``"15Min"``/``"1Hour"``/``"1Day"`` into (amount, unit)."""

    match = _TIMEFRAME_RE.match(value.strip())
    if not match:
        raise ValueError(f"unsupported timeframe: {value!r}")
    return int(match.group(1)), _UNIT_ALIASES[match.group(2).lower()]


def _as_dict(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict):
        return payload
    if hasattr(payload, "model_dump"):
        return payload.model_dump()  # type: ignore[no-any-return]
    return dict(vars(payload))


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "").lower()


def _float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def to_position(raw: Any) -> Position:
    data = _as_dict(raw)
    qty = _float(data.get("qty"))
    side_raw = _enum_value(data.get("side"))
    side = PositionSide(side_raw) if side_raw in {"long", "short"} else (
        PositionSide.SHORT if qty < 0 else PositionSide.LONG
    )
    return Position(
        symbol=str(data.get("symbol")),
        side=side,
        quantity=abs(int(qty)),
        market_value=_float(data.get("market_value")),
    )


def to_open_order(raw: Any) -> OpenOrder:
    data = _as_dict(raw)
    side_raw = _enum_value(data.get("side"))
    return OpenOrder(
        id=str(data.get("id") or ""),
        symbol=str(data.get("symbol") or ""),
        side=OrderSide(side_raw) if side_raw in {"buy", "sell"} else None,
        quantity=_float(data.get("qty")),
        status=_enum_value(data.get("status")) or "new",
    )


class AlpacaGateway(Gateway):
    """Thin async wrapper; blocking SDK calls run in worker threads."""

    def __init__(
        self,
        settings: Optional[AlpacaSettings] = None,
        *,
        trading_client: Optional[object] = None,
        data_client: Optional[object] = None,
        max_retries: int = 5,
        now: Callable[[], dt.datetime] = lambda: dt.datetime.now(dt.timezone.utc),
    ) -> None:
        self.settings = settings or AlpacaSettings()
        self._trading = trading_client
        self._data = data_client
        self._max_retries = max_retries
        self._now = now

    @property
    def trading(self) -> Any:
        if self._trading is None:
            from alpaca.trading.client import TradingClient

            self._trading = TradingClient(
                self.settings.key_id,
                self.settings.secret_key,
                paper=self.settings.paper,
            )
        return self._trading

    @property
    def data(self) -> Any:
        if self._data is None:
            from alpaca.data.historical import StockHistoricalDataClient

            self._data = StockHistoricalDataClient(self.settings.key_id, self.settings.secret_key)
        return self._data

    async def _call(self, fn: Callable[[], T]) -> T:
        async def _attempt() -> T:
            return await asyncio.to_thread(fn)

        return await backoff_request(_attempt, max_retries=self._max_retries)

    async def _query(self, what: str, fn: Callable[[], T], *, symbol: str | None = None) -> T:
        try:
            return await self._call(fn)
        except TransientFetchFailure:
            raise
        except Exception as exc:
            log.warning("gateway.query.failed", extra={"what": what, "symbol": symbol, "error": str(exc)})
            raise TransientFetchFailure(f"{what} failed: {exc}", symbol=symbol) from exc

    async def get_clock(self) -> MarketClock:
        clock = await self._query("clock", lambda: self.trading.get_clock())
        return MarketClock.from_alpaca(_as_dict(clock))

    def _bars_request(self, symbol: str, timeframe: str, limit: int) -> Any:
        from alpaca.data.enums import DataFeed
        from alpaca.data.requests import StockBarsRequest
        from alpaca.data.timeframe import TimeFrame, TimeFrameUnit

        amount, unit = parse_timeframe(timeframe)
        tf = TimeFrame(amount, TimeFrameUnit[unit.capitalize()])
        bars_covered = max(limit, _MIN_WINDOW_BARS) * _LOOKBACK_PADDING
        window = dt.timedelta(minutes=_UNIT_MINUTES[unit] * amount * bars_covered)
        return StockBarsRequest(
            symbol_or_symbols=symbol,
            timeframe=tf,
            start=self._now() - window,
            feed=DataFeed[self.settings.data_feed.upper()],
        )

    async def get_bars(self, symbol: str, timeframe: str, limit: int) -> List[Bar]:
        request = self._bars_request(symbol, timeframe, limit)
        response = await self._query(
            "bars", lambda: self.data.get_stock_bars(request), symbol=symbol
        )
        data = getattr(response, "data", response)
        raw_bars = data.get(symbol, []) if hasattr(data, "get") else []
        bars = [
            Bar(
                open=_float(getattr(bar, "open", None)),
                close=_float(getattr(bar, "close", None)),
                timestamp=getattr(bar, "timestamp", None),
            )
            for bar in raw_bars
        ]
        return bars[-limit:] if limit > 0 else []

    async def get_account(self) -> Account:
        raw = _as_dict(await self._query("account", lambda: self.trading.get_account()))
        return Account(
            equity=_float(raw.get("equity")),
            buying_power=_float(raw.get("buying_power")),
            portfolio_value=_float(raw.get("portfolio_value") or raw.get("equity")),
        )

    async def get_positions(self) -> List[Position]:
        raw = await self._query("positions", lambda: self.trading.get_all_positions())
        return [to_position(item) for item in raw]

    async def get_open_orders(self) -> List[OpenOrder]:
        from alpaca.trading.enums import QueryOrderStatus
        from alpaca.trading.requests import GetOrdersRequest

        request = GetOrdersRequest(status=QueryOrderStatus.OPEN)
        raw = await self._query("orders", lambda: self.trading.get_orders(filter=request))
        return [to_open_order(item) for item in raw]

    async def cancel_order(self, order_id: str) -> None:
        await self._query("cancel", lambda: self.trading.cancel_order_by_id(order_id))

    def _order_request(self, order: PendingOrder) -> Any:
        from alpaca.trading.enums import OrderSide as AlpacaOrderSide
        from alpaca.trading.enums import TimeInForce
        from alpaca.trading.requests import LimitOrderRequest, MarketOrderRequest

        kwargs: Dict[str, Any] = {
            "symbol": order.symbol,
            "qty": order.quantity,
            "side": AlpacaOrderSide(order.side.value),
            "time_in_force": TimeInForce(order.time_in_force),
        }
        if order.order_type is OrderType.LIMIT:
            if order.limit_price is None:
                raise OrderRejected("limit order without a limit price", symbol=order.symbol)
            return LimitOrderRequest(limit_price=order.limit_price, **kwargs)
        return MarketOrderRequest(**kwargs)

    async def create_order(self, order: PendingOrder) -> OpenOrder:
        request = self._order_request(order)
        try:
            response = await self._call(lambda: self.trading.submit_order(order_data=request))
        except Exception as exc:
            status = getattr(exc, "status_code", None)
            raise OrderRejected(
                f"order for {order.symbol} rejected: {exc}",
                symbol=order.symbol,
                status_code=status if isinstance(status, int) else None,
            ) from exc
        ack = to_open_order(response)
        if not ack.symbol:
            ack.symbol = order.symbol
        return ack
