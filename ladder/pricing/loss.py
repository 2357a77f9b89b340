from __future__ import annotations

from ladder.pricing.contracts import Direction, LadderEntry, LossPreview


def _stop_crossed(entry: LadderEntry, price: float, direction: Direction) -> bool:
    if entry.stop_loss_price is None:
        return False
    if direction is Direction.BUY:
        return price <= entry.stop_loss_price
    return price >= entry.stop_loss_price


def preview_loss(
    entries: list[LadderEntry],
    hypothetical_price: float,
    direction: Direction | str,
    stop_loss_enabled: bool,
    account_balance: float,
) -> LossPreview:
    """Split the loss of every rung at ``hypothetical_price`` into realized and unrealized parts.

    A rung whose stop has been crossed realizes its loss at the stop level and
    counts as closed; any other losing rung stays open.  When the open loss
    exceeds ``account_balance`` the whole open position is treated as
    liquidated: realized loss becomes the balance and every rung is closed.

    Raises ``ValueError`` when ``direction`` is not a ``Direction``; pass the
    direction of the ``LadderResult`` that produced ``entries``.
    """
    side = Direction.parse(direction)
    if side is None:
        raise ValueError(f"Unknown direction: {direction}")

    preview = LossPreview()
    for entry in entries:
        if side is Direction.BUY:
            if hypothetical_price >= entry.price:
                continue
        elif hypothetical_price <= entry.price:
            continue

        if stop_loss_enabled and _stop_crossed(entry, hypothetical_price, side):
            stop = float(entry.stop_loss_price)
            per_unit = entry.price - stop if side is Direction.BUY else stop - entry.price
            preview.realized_loss += per_unit * entry.volume
            preview.closed_position_size += entry.volume
        else:
            per_unit = (
                entry.price - hypothetical_price
                if side is Direction.BUY
                else hypothetical_price - entry.price
            )
            preview.unrealized_loss += per_unit * entry.volume
            preview.open_position_size += entry.volume

    if preview.unrealized_loss > account_balance:
        preview.realized_loss = float(account_balance)
        preview.unrealized_loss = 0.0
        preview.closed_position_size += preview.open_position_size
        preview.open_position_size = 0.0
        preview.margin_call = True
    return preview
