from __future__ import annotations

import math

import pytest

from ladder.instruments import InstrumentCatalog
from ladder.pricing.contracts import Direction, LadderRequest, Leveraged, Spot, ValidationReason
from ladder.pricing.generator import (
    clamp_leverage,
    default_total_notional,
    generate_ladder,
    start_price_from_market,
)
from ladder.pricing.rounding import format_price, round_price

CATALOG = InstrumentCatalog.default()


def _request(**overrides) -> LadderRequest:
    params = {
        "symbol": "BTC",
        "reference_price": 100.0,
        "direction": "buy",
        "order_count": 3,
        "price_step_pct": 10.0,
        "volume_step_pct": 0.0,
        "total_notional": 300.0,
    }
    params.update(overrides)
    return LadderRequest(**params)


def test_buy_ladder_example_prices_and_notional() -> None:
    result = generate_ladder(_request(), CATALOG)

    assert result.ok is True
    assert result.direction is Direction.BUY
    prices = [entry.price for entry in result.entries]
    assert prices == pytest.approx([100.0, 90.9090909, 82.6446281], rel=1e-6)
    for entry in result.entries:
        assert entry.notional == pytest.approx(100.0, rel=1e-12)
    assert [entry.index for entry in result.entries] == [0, 1, 2]


def test_rounded_price_uses_instrument_decimals() -> None:
    result = generate_ladder(_request(), CATALOG)

    assert [entry.rounded_price for entry in result.entries] == [100.0, 90.9, 82.6]
    assert result.entries[1].price != result.entries[1].rounded_price


def test_flat_volume_step_splits_total_evenly() -> None:
    result = generate_ladder(_request(order_count=7, price_step_pct=2.5, total_notional=1234.5), CATALOG)

    for entry in result.entries:
        assert entry.notional == pytest.approx(1234.5 / 7, rel=1e-12)


@pytest.mark.parametrize("volume_step", [-20.0, 0.0, 7.5, 35.0])
@pytest.mark.parametrize("direction", ["buy", "sell"])
def test_notional_sums_to_total(volume_step: float, direction: str) -> None:
    request = _request(
        direction=direction,
        order_count=12,
        price_step_pct=1.3,
        volume_step_pct=volume_step,
        total_notional=25000.0,
    )
    result = generate_ladder(request, CATALOG)

    total = math.fsum(entry.notional for entry in result.entries)
    assert total == pytest.approx(25000.0, rel=1e-9)


def test_positive_volume_step_grows_each_rung_notional() -> None:
    result = generate_ladder(_request(order_count=4, volume_step_pct=50.0, total_notional=650.0), CATALOG)

    notionals = [entry.notional for entry in result.entries]
    assert notionals == pytest.approx([80.0, 120.0, 180.0, 270.0], rel=1e-12)
    assert result.details["sum_factors"] == pytest.approx(8.125)


def test_buy_prices_strictly_decrease_and_sell_prices_strictly_increase() -> None:
    buy = generate_ladder(_request(order_count=10, price_step_pct=0.5), CATALOG)
    sell = generate_ladder(_request(direction="sell", order_count=10, price_step_pct=0.5), CATALOG)

    buy_prices = [entry.price for entry in buy.entries]
    sell_prices = [entry.price for entry in sell.entries]
    assert all(a > b for a, b in zip(buy_prices, buy_prices[1:]))
    assert all(a < b for a, b in zip(sell_prices, sell_prices[1:]))
    assert sell_prices[1] == pytest.approx(100.5)


def test_zero_price_step_keeps_every_rung_at_reference() -> None:
    result = generate_ladder(_request(price_step_pct=0.0), CATALOG)

    assert result.ok is True
    assert {entry.price for entry in result.entries} == {100.0}


def test_single_order_equals_reference_and_total() -> None:
    result = generate_ladder(_request(order_count=1, volume_step_pct=12.0, total_notional=500.0), CATALOG)

    assert len(result.entries) == 1
    entry = result.entries[0]
    assert entry.price == pytest.approx(100.0)
    assert entry.notional == pytest.approx(500.0)
    assert entry.volume == pytest.approx(5.0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"reference_price": None},
        {"reference_price": 0},
        {"order_count": 0},
        {"order_count": None},
        {"total_notional": 0.0},
        {"price_step_pct": None},
        {"volume_step_pct": float("nan")},
        {"total_notional": float("inf")},
        {"reference_price": "abc"},
    ],
)
def test_missing_or_zero_inputs_refuse_with_fill_in_message(overrides: dict) -> None:
    result = generate_ladder(_request(**overrides), CATALOG)

    assert result.ok is False
    assert result.entries == []
    assert result.reason is ValidationReason.MISSING_FIELDS
    assert result.message == "Please fill in all fields"


def test_unknown_instrument_is_refused() -> None:
    result = generate_ladder(_request(symbol="NOPE"), CATALOG)

    assert result.ok is False
    assert result.reason is ValidationReason.UNKNOWN_INSTRUMENT
    assert result.details == {"symbol": "NOPE"}


@pytest.mark.parametrize(
    ("overrides", "reason"),
    [
        ({"order_count": 2.5}, ValidationReason.INVALID_ORDER_COUNT),
        ({"order_count": -3}, ValidationReason.INVALID_ORDER_COUNT),
        ({"volume_step_pct": -100.0}, ValidationReason.INVALID_VOLUME_STEP),
        ({"volume_step_pct": -150.0}, ValidationReason.INVALID_VOLUME_STEP),
        ({"price_step_pct": -100.0}, ValidationReason.INVALID_PRICE_STEP),
        ({"direction": "hold"}, ValidationReason.INVALID_DIRECTION),
        ({"leverage": Leveraged(0)}, ValidationReason.INVALID_LEVERAGE),
        ({"stop_loss_pct": -1.0}, ValidationReason.INVALID_PROTECTION),
        ({"take_profit_pct": float("nan")}, ValidationReason.INVALID_PROTECTION),
    ],
)
def test_invalid_parameters_are_refused(overrides: dict, reason: ValidationReason) -> None:
    result = generate_ladder(_request(**overrides), CATALOG)

    assert result.ok is False
    assert result.reason is reason


def test_leverage_is_clamped_to_instrument_maximum() -> None:
    result = generate_ladder(_request(symbol="XLM", leverage=Leveraged(20)), CATALOG)

    assert result.leverage == Leveraged(2)
    assert generate_ladder(_request(), CATALOG).leverage == Spot()


def test_clamp_leverage_accepts_plain_integers() -> None:
    btc = CATALOG.get_instrument("BTC")

    assert clamp_leverage(3, btc) == Leveraged(3)
    assert clamp_leverage(None, btc) == Spot()
    assert clamp_leverage(Spot(), btc) == Spot()


def test_buy_protection_prices_sit_on_losing_and_winning_side() -> None:
    result = generate_ladder(_request(order_count=1, stop_loss_pct=5.0, take_profit_pct=10.0), CATALOG)

    entry = result.entries[0]
    assert entry.stop_loss_price == pytest.approx(95.0)
    assert entry.take_profit_price == pytest.approx(110.0)


def test_sell_protection_prices_are_mirrored() -> None:
    result = generate_ladder(
        _request(direction="sell", order_count=2, stop_loss_pct=5.0, take_profit_pct=10.0),
        CATALOG,
    )

    first, second = result.entries
    assert first.stop_loss_price == pytest.approx(105.0)
    assert first.take_profit_price == pytest.approx(90.0)
    assert second.stop_loss_price == pytest.approx(110.0 * 1.05)


def test_zero_protection_percentages_mean_no_protective_orders() -> None:
    result = generate_ladder(_request(stop_loss_pct=0.0, take_profit_pct=None), CATALOG)

    assert all(entry.stop_loss_price is None for entry in result.entries)
    assert all(entry.take_profit_price is None for entry in result.entries)


def test_distance_to_market_only_when_market_price_given() -> None:
    with_market = generate_ladder(_request(market_price=110.0), CATALOG)
    without_market = generate_ladder(_request(), CATALOG)

    assert with_market.entries[0].distance_to_market_pct == pytest.approx(-9.0909091, rel=1e-6)
    assert without_market.entries[0].distance_to_market_pct is None


def test_pair_and_lowercase_symbols_resolve() -> None:
    result = generate_ladder(_request(symbol="eth/usd"), CATALOG)

    assert result.ok is True
    assert result.instrument is not None
    assert result.instrument.symbol == "ETH"


def test_regeneration_returns_fresh_equal_lists() -> None:
    first = generate_ladder(_request(), CATALOG)
    second = generate_ladder(_request(), CATALOG)

    assert first.entries == second.entries
    assert first.entries is not second.entries


def test_start_price_from_market_offsets_by_direction() -> None:
    assert start_price_from_market(50000.0, "buy", 1.0, 1) == 49500.0
    assert start_price_from_market(50000.0, Direction.SELL, 1.0, 1) == 50500.0
    assert start_price_from_market(0.303, "buy", 2.0, 6) == pytest.approx(0.29694)
    assert start_price_from_market(None, "buy", 1.0, 1) is None
    assert start_price_from_market(100.0, "sideways", 1.0, 1) is None


def test_default_total_notional_scales_balance_by_leverage() -> None:
    assert default_total_notional(1000.0, Leveraged(5)) == 5000.0
    assert default_total_notional(1000.0, Spot()) == 1000.0
    assert default_total_notional(0.0, Leveraged(5)) == 0.0
    assert default_total_notional(None, Leveraged(5)) == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"direction": "buy", "order_count": 2000, "volume_step_pct": 50.0},
        {"direction": "sell", "order_count": 400, "price_step_pct": 900.0},
        {"direction": "sell", "order_count": 400, "price_step_pct": -99.0},
        {"direction": "sell", "order_count": 307, "price_step_pct": 900.0, "stop_loss_pct": 1e6},
    ],
)
def test_progression_beyond_float_range_is_refused(overrides: dict) -> None:
    result = generate_ladder(_request(**overrides), CATALOG)

    assert result.ok is False
    assert result.entries == []
    assert result.reason is ValidationReason.OUT_OF_RANGE
    assert result.message


def test_prices_wider_than_decimal_context_still_round() -> None:
    result = generate_ladder(_request(direction="sell", order_count=30, price_step_pct=900.0), CATALOG)

    assert result.ok is True
    last = result.entries[-1]
    assert last.price == pytest.approx(1e31)
    assert last.rounded_price == last.price


def test_round_and_format_keep_large_values_exact() -> None:
    assert round_price(1e27, 1) == 1e27
    assert format_price(1e20, 8) == "100000000000000000000.00000000"
    assert format_price(0.000123456785, 8) == "0.00012346"
    with pytest.raises(ValueError):
        format_price(float("inf"), 2)
