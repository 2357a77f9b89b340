"""Aggregate statistics for a generated ladder.

``liquidation_price_estimate`` treats the whole account balance as the
margin buffer of the ladder.  It is a display heuristic, not the
exchange's liquidation price.
"""

from __future__ import annotations

import math

from ladder.pricing.contracts import Direction, LadderEntry, LadderSummary, Leverage, Spot
from ladder.pricing.rounding import pct_change


def _positive(value: float | None) -> float | None:
    if value is None:
        return None
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def liquidation_price_estimate(
    *,
    total_notional: float,
    total_volume: float,
    account_balance: float | None,
    direction: Direction,
) -> float | None:
    balance = _positive(account_balance)
    if balance is None or total_volume <= 0 or total_notional <= balance:
        return None
    if direction is Direction.BUY:
        return (total_notional - balance) / total_volume
    return (total_notional + balance) / total_volume


def summarize(
    entries: list[LadderEntry],
    reference_market_price: float | None,
    account_balance: float | None,
    direction: Direction | str,
    leverage: Leverage = Spot(),
) -> LadderSummary:
    """Aggregate a generated ladder; every value that would divide by zero is ``None``.

    ``direction`` is the one carried by the ``LadderResult`` the entries came
    from. Anything that does not parse as a ``Direction`` is a caller error
    and raises ``ValueError``.
    """
    side = Direction.parse(direction)
    if side is None:
        raise ValueError(f"Unknown direction: {direction}")

    total_notional = math.fsum(entry.notional for entry in entries)
    total_volume = math.fsum(entry.volume for entry in entries)
    average_price = total_notional / total_volume if total_volume > 0 else None

    price_range_pct = None
    if entries:
        price_range_pct = pct_change(entries[-1].price, entries[0].price)

    balance = _positive(account_balance)
    leverage_used = None
    if not isinstance(leverage, Spot) and balance is not None and total_notional > 0:
        leverage_used = total_notional / balance

    market = _positive(reference_market_price)
    average_distance_pct = None
    if average_price is not None and market is not None:
        average_distance_pct = pct_change(average_price, market)

    return LadderSummary(
        order_count=len(entries),
        total_notional=total_notional,
        total_volume=total_volume,
        average_price=average_price,
        price_range_pct=price_range_pct,
        leverage_used=leverage_used,
        liquidation_price_estimate=liquidation_price_estimate(
            total_notional=total_notional,
            total_volume=total_volume,
            account_balance=balance,
            direction=side,
        ),
        average_distance_pct=average_distance_pct,
    )
