"""Error taxonomy shared by the gateway and the rebalance engine."""

from __future__ import annotations

from typing import Any


class LongShortError(Exception):
    """Base class for all errors raised by this package."""


class TransientFetchFailure(LongShortError):
    """Raised when a clock, bar, account, position or order query fails.

    Callers default to a neutral value (score 0, skip the position) and keep going.
    """

    def __init__(self, message: str, *, symbol: str | None = None) -> None:
        super().__init__(message)
        self.symbol = symbol


class OrderRejected(LongShortError):
    """Raised when the broker refuses an order submission."""

    def __init__(
        self,
        message: str,
        *,
        symbol: str | None = None,
        status_code: int | None = None,
        payload: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.symbol = symbol
        self.status_code = status_code
        self.payload = payload


class ConfigurationMissing(LongShortError):
    """Raised at startup when the universe or credentials are unusable."""


__all__ = [
    "LongShortError",
    "TransientFetchFailure",
    "OrderRejected",
    "ConfigurationMissing",
]
