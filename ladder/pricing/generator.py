"""Order-ladder generator.

Prices follow one geometric progression away from the reference price
(downward for buys, upward for sells) and per-rung notional follows a
second, independent progression scaled so the rungs sum to the requested
total notional::

    weight_i   = (1 + volume_step_pct / 100) ** i
    notional_i = total_notional * weight_i / sum(weight)
    price_i    = reference / (1 + price_step_pct / 100) ** i     (buy)
               = reference * (1 + price_step_pct / 100) ** i     (sell)
    volume_i   = notional_i / price_i

All arithmetic runs at full precision; ``LadderEntry.rounded_price`` is the
only rounded value.  Incomplete or invalid input yields a refused
``LadderResult`` instead of an exception.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from ladder.instruments import Instrument, InstrumentCatalog
from ladder.pricing.contracts import (
    Direction,
    LadderEntry,
    LadderRequest,
    LadderResult,
    Leverage,
    Leveraged,
    Spot,
    ValidationReason,
)
from ladder.pricing.rounding import pct_change, round_price

LOGGER = logging.getLogger(__name__)


def _as_finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _refuse(reason: ValidationReason, **details: Any) -> LadderResult:
    LOGGER.debug("Ladder refused reason=%s details=%s", reason.value, details)
    return LadderResult(ok=False, reason=reason, details=details)


def clamp_leverage(requested: Leverage | int | None, instrument: Instrument) -> Leverage:
    if requested is None or isinstance(requested, Spot):
        return Spot()
    factor = requested.factor if isinstance(requested, Leveraged) else int(requested)
    return Leveraged(max(1, min(int(factor), int(instrument.max_leverage))))


def protective_prices(
    price: float,
    direction: Direction,
    *,
    stop_loss_pct: float | None,
    take_profit_pct: float | None,
) -> tuple[float | None, float | None]:
    """Return ``(stop, take_profit)``; a zero or missing percentage means no order."""
    stop = None
    take_profit = None
    if stop_loss_pct:
        offset = stop_loss_pct / 100.0
        stop = price * (1.0 - offset) if direction is Direction.BUY else price * (1.0 + offset)
    if take_profit_pct:
        offset = take_profit_pct / 100.0
        take_profit = price * (1.0 + offset) if direction is Direction.BUY else price * (1.0 - offset)
    return stop, take_profit


def _progression(
    reference_price: float,
    total_notional: float,
    order_count: int,
    price_ratio: float,
    volume_ratio: float,
    direction: Direction,
) -> tuple[float, float, list[tuple[float, float]]] | None:
    """Return ``(sum_factors, base_notional, [(price, volume), ...])`` or ``None`` past float range."""
    try:
        weights = [volume_ratio**i for i in range(order_count)]
        sum_factors = sum(weights)
        if not math.isfinite(sum_factors) or sum_factors <= 0:
            return None
        base_notional = total_notional / sum_factors
        points: list[tuple[float, float]] = []
        for i, weight in enumerate(weights):
            if direction is Direction.BUY:
                price = reference_price / price_ratio**i
            else:
                price = reference_price * price_ratio**i
            if not math.isfinite(price) or price <= 0:
                return None
            volume = base_notional * weight / price
            if not math.isfinite(volume) or not math.isfinite(price * volume):
                return None
            points.append((price, volume))
    except (OverflowError, ZeroDivisionError):
        return None
    return sum_factors, base_notional, points


def generate_ladder(request: LadderRequest, catalog: InstrumentCatalog) -> LadderResult:
    required = {
        "reference_price": _as_finite(request.reference_price),
        "order_count": _as_finite(request.order_count),
        "price_step_pct": _as_finite(request.price_step_pct),
        "volume_step_pct": _as_finite(request.volume_step_pct),
        "total_notional": _as_finite(request.total_notional),
    }
    missing = [name for name, value in required.items() if value is None]
    for name in ("reference_price", "order_count", "total_notional"):
        if required[name] == 0:
            missing.append(name)
    if missing:
        return _refuse(ValidationReason.MISSING_FIELDS, missing=sorted(missing))

    instrument = catalog.get_instrument(request.symbol)
    if instrument is None:
        return _refuse(ValidationReason.UNKNOWN_INSTRUMENT, symbol=request.symbol)

    direction = Direction.parse(request.direction)
    if direction is None:
        return _refuse(ValidationReason.INVALID_DIRECTION, direction=str(request.direction))

    reference_price = float(required["reference_price"])
    total_notional = float(required["total_notional"])
    if reference_price < 0 or total_notional < 0:
        return _refuse(
            ValidationReason.MISSING_FIELDS,
            missing=[name for name in ("reference_price", "total_notional") if float(required[name]) < 0],
        )

    raw_count = float(required["order_count"])
    if raw_count < 1 or not raw_count.is_integer():
        return _refuse(ValidationReason.INVALID_ORDER_COUNT, order_count=request.order_count)
    order_count = int(raw_count)

    price_ratio = 1.0 + float(required["price_step_pct"]) / 100.0
    if price_ratio <= 0:
        return _refuse(ValidationReason.INVALID_PRICE_STEP, price_step_pct=request.price_step_pct)
    volume_ratio = 1.0 + float(required["volume_step_pct"]) / 100.0
    if volume_ratio <= 0:
        return _refuse(ValidationReason.INVALID_VOLUME_STEP, volume_step_pct=request.volume_step_pct)

    if isinstance(request.leverage, Leveraged) and request.leverage.factor < 1:
        return _refuse(ValidationReason.INVALID_LEVERAGE, leverage=request.leverage.factor)
    leverage = clamp_leverage(request.leverage, instrument)

    stop_loss_pct = _as_finite(request.stop_loss_pct)
    take_profit_pct = _as_finite(request.take_profit_pct)
    for name, raw, parsed in (
        ("stop_loss_pct", request.stop_loss_pct, stop_loss_pct),
        ("take_profit_pct", request.take_profit_pct, take_profit_pct),
    ):
        if raw is not None and (parsed is None or parsed < 0):
            return _refuse(ValidationReason.INVALID_PROTECTION, field=name, value=raw)

    market_price = _as_finite(request.market_price)
    if market_price is not None and market_price <= 0:
        market_price = None

    rungs = _progression(reference_price, total_notional, order_count, price_ratio, volume_ratio, direction)
    if rungs is None:
        return _refuse(
            ValidationReason.OUT_OF_RANGE,
            order_count=order_count,
            price_step_pct=request.price_step_pct,
            volume_step_pct=request.volume_step_pct,
        )
    sum_factors, base_notional, points = rungs

    entries: list[LadderEntry] = []
    for i, (price, volume) in enumerate(points):
        stop, take_profit = protective_prices(
            price,
            direction,
            stop_loss_pct=stop_loss_pct,
            take_profit_pct=take_profit_pct,
        )
        if any(value is not None and not math.isfinite(value) for value in (stop, take_profit)):
            return _refuse(ValidationReason.OUT_OF_RANGE, index=i, stop_loss_price=stop, take_profit_price=take_profit)
        entries.append(
            LadderEntry(
                index=i,
                price=price,
                rounded_price=round_price(price, instrument.price_decimals),
                volume=volume,
                notional=price * volume,
                distance_to_market_pct=pct_change(price, market_price) if market_price else None,
                stop_loss_price=stop,
                take_profit_price=take_profit,
            )
        )

    return LadderResult(
        ok=True,
        entries=entries,
        direction=direction,
        leverage=leverage,
        instrument=instrument,
        details={"sum_factors": sum_factors, "base_notional": base_notional},
    )


def start_price_from_market(
    market_price: float | None,
    direction: Direction | str,
    offset_pct: float,
    price_decimals: int,
) -> float | None:
    market = _as_finite(market_price)
    side = Direction.parse(direction)
    if market is None or market <= 0 or side is None:
        return None
    if side is Direction.BUY:
        start = market * (1.0 - offset_pct / 100.0)
    else:
        start = market * (1.0 + offset_pct / 100.0)
    return round_price(start, price_decimals)


def default_total_notional(account_balance: float | None, leverage: Leverage) -> float:
    balance = _as_finite(account_balance)
    if balance is None or balance <= 0:
        return 0.0
    return balance * leverage.factor
