"""Clock utilities for trading sessions."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Any, Mapping


def _parse_ts(value: Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        parsed = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass(slots=True)
class MarketClock:
    timestamp: dt.datetime
    is_open: bool
    next_open: dt.datetime
    next_close: dt.datetime

    @classmethod
    def from_alpaca(cls, payload: Mapping[str, Any]) -> "MarketClock":
        """Create from an Alpaca clock payload (REST dict or model dump)."""

        return cls(
            timestamp=_parse_ts(payload["timestamp"]),
            is_open=bool(payload.get("is_open", False)),
            next_open=_parse_ts(payload["next_open"]),
            next_close=_parse_ts(payload["next_close"]),
        )

    @property
    def time_to_close(self) -> dt.timedelta:
        """Absolute distance between now and the next close."""

        return abs(self.next_close - self.timestamp)

    @property
    def minutes_until_open(self) -> int:
        seconds = (self.next_open - self.timestamp).total_seconds()
        return max(0, math.floor(seconds / 60))
