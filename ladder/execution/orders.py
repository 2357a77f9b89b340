from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ladder.config import SubmissionConfig
from ladder.execution.gateway import ExchangeGatewayError, OrderGateway
from ladder.instruments import Instrument
from ladder.pricing.contracts import Direction, LadderEntry, LadderResult, Leverage, Spot
from ladder.pricing.rounding import format_price, format_volume

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RungOutcome:
    index: int
    ok: bool
    order_id: str | None = None
    error: str | None = None
    description: str | None = None


@dataclass(slots=True)
class SubmissionReport:
    pair: str
    outcomes: list[RungOutcome] = field(default_factory=list)
    batches: int = 0
    validate_only: bool = False
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return bool(self.outcomes) and all(item.ok for item in self.outcomes)

    @property
    def failed(self) -> list[RungOutcome]:
        return [item for item in self.outcomes if not item.ok]

    @property
    def order_ids(self) -> list[str]:
        return [item.order_id for item in self.outcomes if item.order_id]


def to_exchange_order(
    entry: LadderEntry,
    instrument: Instrument,
    *,
    direction: Direction,
    leverage: Leverage = Spot(),
    reduce_only: bool = False,
    time_in_force: str = "GTC",
) -> dict[str, Any]:
    decimals = instrument.price_decimals
    order: dict[str, Any] = {
        "ordertype": "limit",
        "type": direction.value,
        "price": format_price(entry.price, decimals),
        "volume": format_volume(entry.volume, instrument.volume_decimals),
        "timeinforce": time_in_force,
    }
    if not isinstance(leverage, Spot):
        order["leverage"] = str(leverage.factor)
    if reduce_only:
        order["reduce_only"] = True
    # One conditional close per order; stop-loss takes precedence.
    if entry.stop_loss_price is not None:
        order["close"] = {"ordertype": "stop-loss", "price": format_price(entry.stop_loss_price, decimals)}
    elif entry.take_profit_price is not None:
        order["close"] = {"ordertype": "take-profit", "price": format_price(entry.take_profit_price, decimals)}
    return order


def batch_orders(items: list[T], batch_size: int) -> list[list[T]]:
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")
    return [items[start : start + batch_size] for start in range(0, len(items), batch_size)]


def _describe(item: dict[str, Any]) -> str | None:
    descr = item.get("descr")
    if isinstance(descr, dict):
        text = descr.get("order")
        return str(text) if text else None
    return None


def _require_submittable(result: LadderResult) -> None:
    if not result.ok or result.instrument is None or result.direction is None:
        raise ValueError(f"Cannot submit a refused ladder: {result.message or 'incomplete result'}")


class LadderSubmitter:
    """Hands a finished ladder to an ``OrderGateway`` in index-ordered batches.

    Every rung gets exactly one ``RungOutcome``.  Failures are reported, not
    retried: a per-order error lands on its own rung, a failed batch call marks
    all rungs of that batch and submission continues with the next batch.
    """

    def __init__(self, gateway: OrderGateway, config: SubmissionConfig | None = None):
        self.gateway = gateway
        self.config = config or SubmissionConfig()

    def submit(self, result: LadderResult, *, reduce_only: bool = False) -> SubmissionReport:
        _require_submittable(result)
        instrument = result.instrument
        report = SubmissionReport(pair=instrument.pair, validate_only=self.config.validate_only)
        indexed = [
            (
                entry.index,
                to_exchange_order(
                    entry,
                    instrument,
                    direction=result.direction,
                    leverage=result.leverage,
                    reduce_only=reduce_only,
                    time_in_force=self.config.time_in_force,
                ),
            )
            for entry in result.entries
        ]
        chunks = batch_orders(indexed, self.config.batch_size)

        for batch_no, chunk in enumerate(chunks, start=1):
            indices = [idx for idx, _ in chunk]
            orders = [order for _, order in chunk]
            report.batches += 1
            LOGGER.info(
                "Submitting batch %d/%d pair=%s rungs=%d-%d",
                batch_no,
                len(chunks),
                instrument.pair,
                indices[0],
                indices[-1],
            )
            try:
                responses = self.gateway.submit_batch(
                    instrument.pair,
                    orders,
                    validate=self.config.validate_only,
                )
            except ExchangeGatewayError as exc:
                LOGGER.warning("Batch %d failed pair=%s: %s", batch_no, instrument.pair, exc)
                report.outcomes.extend(RungOutcome(index=idx, ok=False, error=str(exc)) for idx in indices)
                continue

            for position, idx in enumerate(indices):
                item = responses[position] if position < len(responses) else None
                if item is None:
                    report.outcomes.append(RungOutcome(index=idx, ok=False, error="Missing result for order"))
                elif item.get("error"):
                    report.outcomes.append(
                        RungOutcome(index=idx, ok=False, error=str(item["error"]), description=_describe(item))
                    )
                else:
                    txid = item.get("txid")
                    report.outcomes.append(
                        RungOutcome(
                            index=idx,
                            ok=True,
                            order_id=str(txid) if txid else None,
                            description=_describe(item),
                        )
                    )

        if report.failed:
            LOGGER.warning(
                "Ladder submission pair=%s failed rungs=%s",
                instrument.pair,
                [item.index for item in report.failed],
            )
        return report

    def cancel(self, order_ids: list[str]) -> int:
        if not order_ids:
            return 0
        return self.gateway.cancel_orders(order_ids)

    def replace(self, result: LadderResult, *, reduce_only: bool = False) -> SubmissionReport:
        """Cancel resting orders on the same pair and side, then submit ``result``.

        Validate-only runs leave existing orders in place.
        """
        _require_submittable(result)
        cancelled = 0
        if not self.config.validate_only:
            previous = self.gateway.open_orders(result.instrument.pair, result.direction.value)
            cancelled = self.cancel(previous)
            LOGGER.info(
                "Cancelled %d open %s orders pair=%s before re-laddering",
                cancelled,
                result.direction.value,
                result.instrument.pair,
            )
        report = self.submit(result, reduce_only=reduce_only)
        report.cancelled = cancelled
        return report
