from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator


class InstrumentConfig(BaseModel):
    pair: str
    symbol: str
    display_name: str = ""
    price_decimals: int = 2
    volume_decimals: int = 8
    max_leverage: int = 1

    @model_validator(mode="after")
    def normalize(self) -> "InstrumentConfig":
        self.pair = str(self.pair).strip().upper()
        self.symbol = str(self.symbol).strip().upper()
        if not self.pair or not self.symbol:
            raise ValueError("instrument pair and symbol must be non-empty")
        self.display_name = str(self.display_name).strip() or self.symbol
        if self.price_decimals < 0:
            raise ValueError(f"{self.symbol}.price_decimals must be >= 0")
        if self.volume_decimals < 0:
            raise ValueError(f"{self.symbol}.volume_decimals must be >= 0")
        if self.max_leverage < 1:
            raise ValueError(f"{self.symbol}.max_leverage must be >= 1")
        return self


def default_instruments() -> list[InstrumentConfig]:
    return [
        InstrumentConfig(pair="BTC/USD", symbol="BTC", display_name="Bitcoin", price_decimals=1, max_leverage=5),
        InstrumentConfig(pair="ETH/USD", symbol="ETH", display_name="Ethereum", price_decimals=2, max_leverage=5),
        InstrumentConfig(pair="XRP/USD", symbol="XRP", display_name="Ripple", price_decimals=5, max_leverage=5),
        InstrumentConfig(pair="SUI/USD", symbol="SUI", display_name="Sui", price_decimals=4, max_leverage=3),
        InstrumentConfig(pair="DOGE/USD", symbol="DOGE", display_name="Dogecoin", price_decimals=6, max_leverage=5),
        InstrumentConfig(pair="SOL/USD", symbol="SOL", display_name="Solana", price_decimals=2, max_leverage=4),
        InstrumentConfig(pair="LINK/USD", symbol="LINK", display_name="Chainlink", price_decimals=4, max_leverage=3),
        InstrumentConfig(pair="PEPE/USD", symbol="PEPE", display_name="Pepe", price_decimals=8, max_leverage=3),
        InstrumentConfig(pair="ADA/USD", symbol="ADA", display_name="Cardano", price_decimals=6, max_leverage=3),
        InstrumentConfig(pair="XLM/USD", symbol="XLM", display_name="Stellar", price_decimals=6, max_leverage=2),
    ]


class LadderDefaultsConfig(BaseModel):
    symbol: str = "BTC"
    direction: str = "buy"
    order_count: int = 10
    price_step_pct: float = 1.0
    volume_step_pct: float = 5.0
    start_offset_pct: float = 1.0

    @model_validator(mode="after")
    def validate_values(self) -> "LadderDefaultsConfig":
        self.symbol = self.symbol.strip().upper()
        self.direction = self.direction.strip().lower()
        if self.direction not in {"buy", "sell"}:
            raise ValueError("ladder.direction must be buy or sell")
        if self.order_count <= 0:
            raise ValueError("ladder.order_count must be > 0")
        if self.price_step_pct <= -100:
            raise ValueError("ladder.price_step_pct must be > -100")
        if self.volume_step_pct <= -100:
            raise ValueError("ladder.volume_step_pct must be > -100")
        if self.start_offset_pct < 0:
            raise ValueError("ladder.start_offset_pct must be >= 0")
        return self


class SubmissionConfig(BaseModel):
    batch_size: int = 15
    time_in_force: str = "GTC"
    validate_only: bool = False

    @model_validator(mode="after")
    def validate_values(self) -> "SubmissionConfig":
        if not (1 <= self.batch_size <= 15):
            raise ValueError("submission.batch_size must be in [1,15]")
        self.time_in_force = self.time_in_force.strip().upper()
        if self.time_in_force not in {"GTC", "IOC", "GTD"}:
            raise ValueError("submission.time_in_force must be one of: GTC, IOC, GTD")
        return self


class DailyPlanConfig(BaseModel):
    base_price_distance: float = 0.032
    order_price_distance: float = 0.012
    stop_loss_distance: float = 0.05
    take_profit_distance: float = 0.1
    leverage: int = 5
    order_count: int = 15
    base_volume_fraction: float = 0.0315
    volume_fraction_step: float = 0.005
    use_stop_loss: bool = True

    @model_validator(mode="after")
    def validate_values(self) -> "DailyPlanConfig":
        if self.base_price_distance < 0:
            raise ValueError("base_price_distance must be >= 0")
        if self.order_price_distance < 0:
            raise ValueError("order_price_distance must be >= 0")
        if self.stop_loss_distance < 0 or self.take_profit_distance < 0:
            raise ValueError("stop_loss_distance and take_profit_distance must be >= 0")
        if self.leverage < 1:
            raise ValueError("leverage must be >= 1")
        if self.order_count <= 0:
            raise ValueError("order_count must be > 0")
        if self.base_volume_fraction <= 0:
            raise ValueError("base_volume_fraction must be > 0")
        if self.base_volume_fraction + self.volume_fraction_step * (self.order_count - 1) <= 0:
            raise ValueError("volume_fraction_step makes the last rung non-positive")
        return self


def default_daily_orders() -> dict[str, DailyPlanConfig]:
    return {
        "BTC": DailyPlanConfig(),
        "XRP": DailyPlanConfig(
            base_price_distance=0.065,
            order_price_distance=0.015,
            stop_loss_distance=0.075,
            take_profit_distance=0.15,
        ),
    }


class AppConfig(BaseModel):
    instruments: list[InstrumentConfig] = Field(default_factory=default_instruments)
    ladder: LadderDefaultsConfig = Field(default_factory=LadderDefaultsConfig)
    submission: SubmissionConfig = Field(default_factory=SubmissionConfig)
    daily_orders: dict[str, DailyPlanConfig] = Field(default_factory=default_daily_orders)

    @model_validator(mode="after")
    def normalize_instruments(self) -> "AppConfig":
        if not self.instruments:
            self.instruments = default_instruments()
        dedup: list[InstrumentConfig] = []
        seen: set[str] = set()
        for item in self.instruments:
            if item.symbol in seen or item.pair in seen:
                continue
            seen.add(item.symbol)
            seen.add(item.pair)
            dedup.append(item)
        self.instruments = dedup

        plans: dict[str, DailyPlanConfig] = {}
        for key, plan in self.daily_orders.items():
            symbol = str(key).strip().upper()
            if symbol:
                plans[symbol] = plan
        self.daily_orders = plans
        return self


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as file:
        raw: dict[str, Any] = yaml.safe_load(file) or {}
    return AppConfig.model_validate(raw)
