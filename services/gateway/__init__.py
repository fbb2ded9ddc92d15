"""Brokerage gateways."""

from .alpaca import AlpacaGateway

__all__ = ["AlpacaGateway"]
