"""Instrument catalog.

Maps a ticker ("BTC"), a pair ("BTC/USD") or a slash-less pair ("BTCUSD")
to the static precision and leverage data of a tradable instrument.
The catalog is built once from configuration and never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType

from ladder.config import AppConfig, InstrumentConfig, default_instruments

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Instrument:
    symbol: str
    pair: str
    display_name: str
    price_decimals: int
    max_leverage: int
    volume_decimals: int = 8


def _normalize_key(value: str) -> str:
    return str(value).strip().upper()


class InstrumentCatalog:
    def __init__(self, instruments: list[Instrument]):
        if not instruments:
            raise ValueError("instrument catalog cannot be empty")
        by_key: dict[str, Instrument] = {}
        for item in instruments:
            for key in (item.symbol, item.pair, item.pair.replace("/", "")):
                by_key.setdefault(_normalize_key(key), item)
        self._by_key = MappingProxyType(by_key)
        self._ordered = tuple(instruments)

    @classmethod
    def from_configs(cls, configs: list[InstrumentConfig]) -> "InstrumentCatalog":
        return cls(
            [
                Instrument(
                    symbol=cfg.symbol,
                    pair=cfg.pair,
                    display_name=cfg.display_name,
                    price_decimals=cfg.price_decimals,
                    max_leverage=cfg.max_leverage,
                    volume_decimals=cfg.volume_decimals,
                )
                for cfg in configs
            ]
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "InstrumentCatalog":
        return cls.from_configs(config.instruments)

    @classmethod
    def default(cls) -> "InstrumentCatalog":
        return cls.from_configs(default_instruments())

    def get_instrument(self, symbol: str | None) -> Instrument | None:
        if symbol is None:
            return None
        instrument = self._by_key.get(_normalize_key(symbol))
        if instrument is None:
            LOGGER.debug("Unknown instrument requested: %s", symbol)
        return instrument

    def supported_symbols(self) -> list[str]:
        return [item.symbol for item in self._ordered]

    def __len__(self) -> int:
        return len(self._ordered)
