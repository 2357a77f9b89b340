from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from ladder.instruments import Instrument


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def parse(cls, value: "Direction | str | None") -> "Direction | None":
        if isinstance(value, cls):
            return value
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Spot:
    """No borrowed exposure; notional is limited to the account balance."""

    @property
    def factor(self) -> int:
        return 1


@dataclass(frozen=True, slots=True)
class Leveraged:
    factor: int


Leverage = Union[Spot, Leveraged]


class ValidationReason(str, Enum):
    MISSING_FIELDS = "MISSING_FIELDS"
    UNKNOWN_INSTRUMENT = "UNKNOWN_INSTRUMENT"
    INVALID_DIRECTION = "INVALID_DIRECTION"
    INVALID_ORDER_COUNT = "INVALID_ORDER_COUNT"
    INVALID_PRICE_STEP = "INVALID_PRICE_STEP"
    INVALID_VOLUME_STEP = "INVALID_VOLUME_STEP"
    INVALID_LEVERAGE = "INVALID_LEVERAGE"
    INVALID_PROTECTION = "INVALID_PROTECTION"
    INVALID_MARKET_DATA = "INVALID_MARKET_DATA"
    OUT_OF_RANGE = "OUT_OF_RANGE"


_REASON_MESSAGES: dict[ValidationReason, str] = {
    ValidationReason.MISSING_FIELDS: "Please fill in all fields",
    ValidationReason.UNKNOWN_INSTRUMENT: "Invalid trading pair",
    ValidationReason.INVALID_DIRECTION: "Direction must be buy or sell",
    ValidationReason.INVALID_ORDER_COUNT: "Number of orders must be a positive integer",
    ValidationReason.INVALID_PRICE_STEP: "Price distance must be greater than -100%",
    ValidationReason.INVALID_VOLUME_STEP: "Volume distance must be greater than -100%",
    ValidationReason.INVALID_LEVERAGE: "Leverage must be at least 1x",
    ValidationReason.INVALID_PROTECTION: "Stop-loss and take-profit must be non-negative percentages",
    ValidationReason.INVALID_MARKET_DATA: "Market price and balance must be positive",
    ValidationReason.OUT_OF_RANGE: "Ladder prices or sizes are out of range; use fewer orders or smaller steps",
}


@dataclass(slots=True)
class LadderRequest:
    """User input for one ladder. Numeric fields may be ``None`` while a form is incomplete."""

    symbol: str
    reference_price: float | None
    direction: Direction | str
    order_count: int | None
    price_step_pct: float | None
    volume_step_pct: float | None
    total_notional: float | None
    leverage: Leverage = Spot()
    stop_loss_pct: float | None = None
    take_profit_pct: float | None = None
    market_price: float | None = None


@dataclass(frozen=True, slots=True)
class LadderEntry:
    """One rung. ``price`` keeps full precision; ``rounded_price`` is for display and submission."""

    index: int
    price: float
    rounded_price: float
    volume: float
    notional: float
    distance_to_market_pct: float | None = None
    stop_loss_price: float | None = None
    take_profit_price: float | None = None


@dataclass(slots=True)
class LadderResult:
    ok: bool
    entries: list[LadderEntry] = field(default_factory=list)
    reason: ValidationReason | None = None
    direction: Direction | None = None
    leverage: Leverage = Spot()
    instrument: Instrument | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        if self.reason is None:
            return ""
        return _REASON_MESSAGES[self.reason]


@dataclass(slots=True)
class LadderSummary:
    order_count: int
    total_notional: float
    total_volume: float
    average_price: float | None
    price_range_pct: float | None
    leverage_used: float | None
    liquidation_price_estimate: float | None
    average_distance_pct: float | None = None


@dataclass(slots=True)
class LossPreview:
    realized_loss: float = 0.0
    unrealized_loss: float = 0.0
    open_position_size: float = 0.0
    closed_position_size: float = 0.0
    margin_call: bool = False
