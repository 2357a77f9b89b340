from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext


def _quantize(value: float, decimals: int) -> Decimal:
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    number = Decimal(repr(float(value)))
    if not number.is_finite():
        raise ValueError(f"cannot round non-finite value {value!r}")
    with localcontext() as ctx:
        # Integer digits plus requested decimals must fit the working precision.
        ctx.prec = max(ctx.prec, number.adjusted() + decimals + 2)
        return number.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def round_price(value: float, decimals: int) -> float:
    return float(_quantize(value, decimals))


def format_price(value: float, decimals: int) -> str:
    return format(_quantize(value, decimals), "f")


def format_volume(value: float, decimals: int = 8) -> str:
    return format(_quantize(value, decimals), "f")


def pct_change(value: float, base: float) -> float | None:
    if base == 0 or not math.isfinite(base) or not math.isfinite(value):
        return None
    return (value - base) / base * 100.0
