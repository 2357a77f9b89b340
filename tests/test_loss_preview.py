from __future__ import annotations

import pytest

from ladder.instruments import InstrumentCatalog
from ladder.pricing.contracts import LadderRequest, LossPreview
from ladder.pricing.generator import generate_ladder
from ladder.pricing.loss import preview_loss

CATALOG = InstrumentCatalog.default()


def _ladder(direction: str = "buy", order_count: int = 3, stop_loss_pct: float | None = 5.0):
    # Rungs of 100 notional each at 100, 100 / 1.1, 100 / 1.21 (buy) or 100, 110, 121 (sell).
    result = generate_ladder(
        LadderRequest(
            symbol="BTC",
            reference_price=100.0,
            direction=direction,
            order_count=order_count,
            price_step_pct=10.0,
            volume_step_pct=0.0,
            total_notional=100.0 * order_count,
            stop_loss_pct=stop_loss_pct,
        ),
        CATALOG,
    )
    assert result.ok
    return result.entries


def test_price_above_all_buy_rungs_has_no_loss() -> None:
    preview = preview_loss(_ladder(), 150.0, "buy", False, 1000.0)

    assert preview == LossPreview()


def test_buy_rungs_split_between_stopped_and_open() -> None:
    preview = preview_loss(_ladder(), 90.0, "buy", True, 1000.0)

    # Rung 0 (100) stopped at 95; rung 1 (90.909) still open above its stop; rung 2 not reached.
    assert preview.realized_loss == pytest.approx(5.0)
    assert preview.closed_position_size == pytest.approx(1.0)
    assert preview.unrealized_loss == pytest.approx(1.0)
    assert preview.open_position_size == pytest.approx(1.1)
    assert preview.margin_call is False


def test_disabled_stop_loss_keeps_every_losing_rung_open() -> None:
    preview = preview_loss(_ladder(), 90.0, "buy", False, 1000.0)

    assert preview.realized_loss == 0.0
    assert preview.unrealized_loss == pytest.approx(11.0)
    assert preview.open_position_size == pytest.approx(2.1)
    assert preview.closed_position_size == 0.0


def test_stop_enabled_without_stop_prices_behaves_as_disabled() -> None:
    entries = _ladder(stop_loss_pct=None)

    assert preview_loss(entries, 90.0, "buy", True, 1000.0) == preview_loss(entries, 90.0, "buy", False, 1000.0)


def test_sell_ladder_mirrors_inequalities() -> None:
    entries = _ladder(direction="sell", order_count=2)

    below = preview_loss(entries, 95.0, "sell", True, 1000.0)
    assert below == LossPreview()

    preview = preview_loss(entries, 108.0, "sell", True, 1000.0)
    assert preview.realized_loss == pytest.approx(5.0)
    assert preview.closed_position_size == pytest.approx(1.0)
    assert preview.unrealized_loss == 0.0
    assert preview.open_position_size == 0.0

    open_only = preview_loss(entries, 104.0, "sell", True, 1000.0)
    assert open_only.unrealized_loss == pytest.approx(4.0)
    assert open_only.open_position_size == pytest.approx(1.0)


def test_open_loss_beyond_balance_liquidates_whole_position() -> None:
    preview = preview_loss(_ladder(), 90.0, "buy", False, 5.0)

    assert preview.margin_call is True
    assert preview.realized_loss == 5.0
    assert preview.unrealized_loss == 0.0
    assert preview.open_position_size == 0.0
    assert preview.closed_position_size == pytest.approx(2.1)


def test_liquidation_adds_open_size_to_already_stopped_size() -> None:
    preview = preview_loss(_ladder(), 90.0, "buy", True, 0.5)

    assert preview.margin_call is True
    assert preview.realized_loss == 0.5
    assert preview.closed_position_size == pytest.approx(2.1)


def test_preview_is_idempotent() -> None:
    entries = _ladder(order_count=8)

    first = preview_loss(entries, 70.0, "buy", True, 250.0)
    second = preview_loss(entries, 70.0, "buy", True, 250.0)
    assert first == second
    assert first is not second


def test_unknown_direction_raises() -> None:
    with pytest.raises(ValueError, match="Unknown direction"):
        preview_loss(_ladder(), 90.0, "hold", False, 1000.0)
