from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


class ExchangeGatewayError(RuntimeError):
    """Order gateway failure."""


class RetryableGatewayError(ExchangeGatewayError):
    """Transient failure (network, rate limit); retrying is the gateway's own decision."""


class GatewayRejectedError(ExchangeGatewayError):
    """The exchange refused the whole request."""


class OrderGateway(Protocol):
    def submit_batch(self, pair: str, orders: list[dict[str, Any]], *, validate: bool = False) -> list[dict[str, Any]]:
        """Submit ``orders`` in one call; return one ``{"txid": ...}`` or ``{"error": ...}`` per order, in order."""
        ...

    def open_orders(self, pair: str, side: str | None = None) -> list[str]:
        """Txids of resting orders on ``pair``, optionally only ``"buy"`` or ``"sell"``."""
        ...

    def cancel_orders(self, txids: list[str]) -> int:
        ...


class DryRunGateway:
    """In-memory gateway that accepts every well-formed order and never talks to an exchange."""

    def __init__(self, *, prefix: str = "DRY"):
        self.prefix = prefix
        self.submitted: list[dict[str, Any]] = []
        self.open_txids: list[str] = []
        self._counter = 0
        self._lock = threading.Lock()

    def _next_txid(self) -> str:
        with self._lock:
            self._counter += 1
            return f"{self.prefix}-{self._counter}"

    def submit_batch(self, pair: str, orders: list[dict[str, Any]], *, validate: bool = False) -> list[dict[str, Any]]:
        if not orders:
            raise GatewayRejectedError("EGeneral:Invalid arguments:orders")
        results: list[dict[str, Any]] = []
        for order in orders:
            missing = [key for key in ("ordertype", "type", "price", "volume") if not order.get(key)]
            if missing:
                results.append({"error": f"EGeneral:Invalid arguments:{','.join(missing)}"})
                continue
            descr = f"{order['type']} {order['volume']} {pair} @ limit {order['price']}"
            if validate:
                results.append({"descr": {"order": descr}})
                continue
            txid = self._next_txid()
            self.submitted.append({"pair": pair, "txid": txid, **order})
            self.open_txids.append(txid)
            results.append({"txid": txid, "descr": {"order": descr}})
        LOGGER.info("DRY-RUN: accepted batch pair=%s orders=%d validate=%s", pair, len(orders), validate)
        return results

    def open_orders(self, pair: str, side: str | None = None) -> list[str]:
        still_open = set(self.open_txids)
        return [
            order["txid"]
            for order in self.submitted
            if order["txid"] in still_open
            and order["pair"] == pair
            and (side is None or order["type"] == side)
        ]

    def cancel_orders(self, txids: list[str]) -> int:
        wanted = set(txids)
        before = len(self.open_txids)
        self.open_txids = [txid for txid in self.open_txids if txid not in wanted]
        cancelled = before - len(self.open_txids)
        LOGGER.info("DRY-RUN: cancelled %d orders", cancelled)
        return cancelled
