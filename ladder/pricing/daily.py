"""Daily re-ladder plan.

Buy-only ladder anchored below the current market price.  Rung spacing
grows linearly (``1 + base + step * i`` as a price divider) and each rung
commits a linearly growing fraction of the leveraged trade balance.
"""

from __future__ import annotations

import logging
import math

from ladder.config import DailyPlanConfig
from ladder.instruments import InstrumentCatalog
from ladder.pricing.contracts import (
    Direction,
    LadderEntry,
    LadderResult,
    Leveraged,
    ValidationReason,
)
from ladder.pricing.generator import clamp_leverage
from ladder.pricing.rounding import pct_change, round_price

LOGGER = logging.getLogger(__name__)


def build_daily_plan(
    *,
    symbol: str,
    market_price: float,
    trade_balance: float,
    plan: DailyPlanConfig,
    catalog: InstrumentCatalog,
) -> LadderResult:
    instrument = catalog.get_instrument(symbol)
    if instrument is None:
        return LadderResult(ok=False, reason=ValidationReason.UNKNOWN_INSTRUMENT, details={"symbol": symbol})
    if not (math.isfinite(market_price) and market_price > 0) or not (
        math.isfinite(trade_balance) and trade_balance > 0
    ):
        return LadderResult(
            ok=False,
            reason=ValidationReason.INVALID_MARKET_DATA,
            details={"market_price": market_price, "trade_balance": trade_balance},
        )

    leverage = clamp_leverage(Leveraged(plan.leverage), instrument)
    exposure = trade_balance * leverage.factor
    entries: list[LadderEntry] = []
    for i in range(plan.order_count):
        divider = 1.0 + plan.base_price_distance + plan.order_price_distance * i
        price = market_price / divider
        volume = exposure * (plan.base_volume_fraction + plan.volume_fraction_step * i) / price
        stop = price / (1.0 + plan.stop_loss_distance) if plan.use_stop_loss else None
        take_profit = None if plan.use_stop_loss else price * (1.0 + plan.take_profit_distance)
        entries.append(
            LadderEntry(
                index=i,
                price=price,
                rounded_price=round_price(price, instrument.price_decimals),
                volume=volume,
                notional=price * volume,
                distance_to_market_pct=pct_change(price, market_price),
                stop_loss_price=stop,
                take_profit_price=take_profit,
            )
        )

    LOGGER.info(
        "Daily plan symbol=%s orders=%d market=%s balance=%.2f leverage=%dx",
        instrument.symbol,
        len(entries),
        market_price,
        trade_balance,
        leverage.factor,
    )
    return LadderResult(
        ok=True,
        entries=entries,
        direction=Direction.BUY,
        leverage=leverage,
        instrument=instrument,
        details={"exposure": exposure},
    )
