"""Configuration management for the rebalancer."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationMissing

DEFAULT_UNIVERSE_PATH = Path("configs/universe.yaml")


def _normalize_symbols(raw: Iterable[Any] | str) -> List[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    symbols: List[str] = []
    for item in raw:
        symbol = str(item).strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


class StrategyConfig(BaseModel):
    """Tunables for the long-short and mean-reversion strategies."""

    universe: List[str]
    bucket_fraction: float = Field(default=0.25, gt=0.0, le=1.0)
    lookback_bars: int = Field(default=10, ge=1)
    short_ratio: float = Field(default=0.30, ge=0.0)
    timeframe: str = "1Min"
    preclose_window_sec: float = Field(default=15 * 60, ge=0.0)
    tick_interval_sec: float = Field(default=60.0, gt=0.0)
    open_poll_sec: float = Field(default=60.0, gt=0.0)
    average_bars: int = Field(default=20, ge=1)
    position_scale: float = Field(default=200.0, gt=0.0)

    @field_validator("universe", mode="before")
    @classmethod
    def _clean_universe(cls, value: Any) -> List[str]:
        symbols = _normalize_symbols(value or [])
        if not symbols:
            raise ValueError("symbol universe is empty")
        return symbols


class AlpacaSettings(BaseSettings):
    """Credentials and endpoint flags for the Alpaca gateway."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)

    key_id: str = Field(
        default="",
        validation_alias=AliasChoices("APCA_API_KEY_ID", "ALPACA_API_KEY_ID", "ALPACA_KEY_ID"),
    )
    secret_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "APCA_API_SECRET_KEY", "ALPACA_API_SECRET_KEY", "ALPACA_SECRET_KEY"
        ),
    )
    paper: bool = Field(default=True, validation_alias=AliasChoices("ALPACA_PAPER"))
    live_trading: bool = Field(
        default=False, validation_alias=AliasChoices("LIVE_TRADING")
    )
    data_feed: str = Field(default="iex", validation_alias=AliasChoices("ALPACA_DATA_FEED"))

    def is_configured(self) -> bool:
        return bool(self.key_id and self.secret_key)

    def require(self) -> "AlpacaSettings":
        """Fail closed on missing credentials or unconfirmed live trading."""

        if not self.is_configured():
            raise ConfigurationMissing(
                "Missing APCA_API_KEY_ID/APCA_API_SECRET_KEY in environment."
            )
        if not self.paper and not self.live_trading:
            raise ConfigurationMissing("Refusing to enable live trading without LIVE_TRADING=true.")
        return self


def _read_mapping(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_universe(path: Path | str | None = None) -> List[str]:
    """Load the ordered symbol universe from a YAML or JSON file.

    The file holds a ``symbols`` list (``stocks`` is accepted too); a bare list
    or a comma separated string works as well.
    """

    resolved = Path(path or os.getenv("UNIVERSE_FILE") or DEFAULT_UNIVERSE_PATH)
    if not resolved.exists():
        raise ConfigurationMissing(f"Universe file not found: {resolved}")
    data = _read_mapping(resolved)
    if isinstance(data, dict):
        data = data.get("symbols", data.get("stocks"))
    symbols = _normalize_symbols(data or [])
    if not symbols:
        raise ConfigurationMissing(
            f"Universe file {resolved} does not list any symbols; add a 'symbols' array."
        )
    return symbols


def load_strategy_config(
    path: Path | str | None = None, **overrides: Optional[Any]
) -> StrategyConfig:
    """Build a validated :class:`StrategyConfig` from the universe file.

    Tunables may live next to ``symbols`` in the same file; keyword overrides win.
    """

    resolved = Path(path or os.getenv("UNIVERSE_FILE") or DEFAULT_UNIVERSE_PATH)
    universe = load_universe(resolved)
    data = _read_mapping(resolved)
    payload: dict[str, Any] = {}
    if isinstance(data, dict):
        payload.update({k: v for k, v in data.items() if k in StrategyConfig.model_fields})
    payload.update({k: v for k, v in overrides.items() if v is not None})
    payload["universe"] = universe
    try:
        return StrategyConfig(**payload)
    except ValidationError as exc:
        raise ConfigurationMissing(f"Invalid strategy configuration in {resolved}: {exc}") from exc


__all__ = [
    "AlpacaSettings",
    "DEFAULT_UNIVERSE_PATH",
    "StrategyConfig",
    "load_strategy_config",
    "load_universe",
]
