from __future__ import annotations

import argparse
import logging
import math
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from ladder.config import AppConfig, load_config
from ladder.execution.gateway import DryRunGateway
from ladder.execution.orders import LadderSubmitter, SubmissionReport
from ladder.instruments import Instrument, InstrumentCatalog
from ladder.pricing.contracts import (
    LadderRequest,
    LadderResult,
    LadderSummary,
    Leverage,
    Leveraged,
    LossPreview,
    Spot,
)
from ladder.pricing.daily import build_daily_plan
from ladder.pricing.generator import (
    clamp_leverage,
    default_total_notional,
    generate_ladder,
    start_price_from_market,
)
from ladder.pricing.loss import preview_loss
from ladder.pricing.metrics import summarize
from ladder.pricing.rounding import format_price

LOGGER = logging.getLogger("ladder")

EXIT_REFUSED = 2


def _add_ladder_arguments(parser: argparse.ArgumentParser, config: AppConfig) -> None:
    defaults = config.ladder
    parser.add_argument("--symbol", default=defaults.symbol, help="Ticker or pair, e.g. BTC or BTC/USD")
    parser.add_argument("--direction", choices=["buy", "sell"], default=defaults.direction)
    parser.add_argument("--price", type=float, default=None, help="Start price; derived from --market-price when omitted")
    parser.add_argument("--market-price", type=float, default=None)
    parser.add_argument("--offset", type=float, default=defaults.start_offset_pct, help="Start offset from market, %%")
    parser.add_argument("--orders", type=int, default=defaults.order_count)
    parser.add_argument("--price-step", type=float, default=defaults.price_step_pct, help="Distance between orders, %%")
    parser.add_argument("--volume-step", type=float, default=defaults.volume_step_pct, help="Volume growth per order, %%")
    parser.add_argument("--total", type=float, default=None, help="Total notional; balance x leverage when omitted")
    parser.add_argument("--balance", type=float, default=None, help="Account balance in quote currency")
    leverage_group = parser.add_mutually_exclusive_group()
    leverage_group.add_argument("--leverage", type=int, default=None)
    leverage_group.add_argument("--spot", action="store_true")
    parser.add_argument("--stop-loss", type=float, default=None, help="Stop-loss offset per order, %%")
    parser.add_argument("--take-profit", type=float, default=None, help="Take-profit offset per order, %%")


def parse_args(argv: list[str] | None = None, config: AppConfig | None = None) -> argparse.Namespace:
    cfg = config or AppConfig()
    parser = argparse.ArgumentParser(description="Scaled limit-order ladder calculator")
    parser.add_argument("--config", default=os.getenv("LADDER_CONFIG", "config.yaml"), help="Path to YAML config")
    sub = parser.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Print the ladder, its summary and an optional loss preview")
    _add_ladder_arguments(preview, cfg)
    preview.add_argument("--hypothetical-price", type=float, default=None)
    preview.add_argument("--stop-loss-enabled", action="store_true")

    submit = sub.add_parser("submit", help="Submit the ladder through the dry-run gateway")
    _add_ladder_arguments(submit, cfg)
    submit.add_argument("--reduce-only", action="store_true")
    submit.add_argument("--validate", action="store_true", help="Ask the gateway to validate only")

    daily = sub.add_parser("daily", help="Build the daily buy ladder for a symbol")
    daily.add_argument("--symbol", default=cfg.ladder.symbol)
    daily.add_argument("--market-price", type=float, required=True)
    daily.add_argument("--balance", type=float, required=True)
    daily.add_argument("--submit", action="store_true")
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def resolve_config(path: str) -> AppConfig:
    config_path = Path(path)
    if not config_path.exists():
        LOGGER.info("Config %s not found; using built-in defaults", config_path)
        return AppConfig()
    return load_config(config_path)


def _config_path_from_argv(argv: list[str] | None) -> str:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=os.getenv("LADDER_CONFIG", "config.yaml"))
    known, _ = pre.parse_known_args(argv)
    return known.config


def build_request(args: argparse.Namespace, catalog: InstrumentCatalog) -> LadderRequest:
    instrument = catalog.get_instrument(args.symbol)
    leverage: Leverage = Spot()
    if not args.spot and args.leverage is not None:
        leverage = Leveraged(args.leverage)
    elif not args.spot and instrument is not None:
        leverage = Leveraged(instrument.max_leverage)

    price = args.price
    if price is None and instrument is not None:
        price = start_price_from_market(args.market_price, args.direction, args.offset, instrument.price_decimals)

    total = args.total
    if total is None and args.balance is not None and instrument is not None:
        total = default_total_notional(args.balance, clamp_leverage(leverage, instrument))

    return LadderRequest(
        symbol=args.symbol,
        reference_price=price,
        direction=args.direction,
        order_count=args.orders,
        price_step_pct=args.price_step,
        volume_step_pct=args.volume_step,
        total_notional=total,
        leverage=leverage,
        stop_loss_pct=args.stop_loss,
        take_profit_pct=args.take_profit,
        market_price=args.market_price,
    )


def _fmt_optional(value: float | None, decimals: int, suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}{suffix}"


def format_ladder_table(result: LadderResult) -> str:
    instrument: Instrument = result.instrument
    decimals = instrument.price_decimals
    lines = [f"{'#':>3}  {'Price':>14}  {'Volume':>16}  {'Total $':>12}  {'Dist %':>8}  {'Stop':>14}  {'Target':>14}"]
    for entry in result.entries:
        lines.append(
            f"{entry.index + 1:>3}  "
            f"{format_price(entry.price, decimals):>14}  "
            f"{entry.volume:>16.6f}  "
            f"{entry.notional:>12.2f}  "
            f"{_fmt_optional(entry.distance_to_market_pct, 2):>8}  "
            f"{_fmt_optional(entry.stop_loss_price, decimals):>14}  "
            f"{_fmt_optional(entry.take_profit_price, decimals):>14}"
        )
    return "\n".join(lines)


def format_summary(summary: LadderSummary, instrument: Instrument) -> str:
    decimals = instrument.price_decimals
    return "\n".join(
        [
            f"Orders: {summary.order_count}",
            f"Total range: {_fmt_optional(summary.price_range_pct, 2, '%')}",
            f"Average price: {_fmt_optional(summary.average_price, decimals)}",
            f"Average distance to market: {_fmt_optional(summary.average_distance_pct, 2, '%')}",
            f"Total volume: {summary.total_volume:.6f} {instrument.symbol}",
            f"Total $: {summary.total_notional:.2f}",
            f"Leverage used: {_fmt_optional(summary.leverage_used, 2, 'x')}",
            f"Liquidation price (estimate): {_fmt_optional(summary.liquidation_price_estimate, decimals)}",
        ]
    )


def format_loss(preview: LossPreview) -> str:
    lines = [
        f"Realized loss: {preview.realized_loss:.2f}",
        f"Unrealized loss: {preview.unrealized_loss:.2f}",
        f"Open position size: {preview.open_position_size:.6f}",
        f"Closed position size: {preview.closed_position_size:.6f}",
    ]
    if preview.margin_call:
        lines.append("Open loss exceeds balance: position liquidated")
    return "\n".join(lines)


def format_report(report: SubmissionReport) -> str:
    lines = [f"Pair {report.pair}: {len(report.outcomes) - len(report.failed)}/{len(report.outcomes)} accepted in {report.batches} batch(es)"]
    if report.cancelled:
        lines.append(f"Cancelled {report.cancelled} previous order(s)")
    for outcome in report.outcomes:
        if outcome.ok:
            lines.append(f"  #{outcome.index + 1} {outcome.order_id or '-'} {outcome.description or ''}".rstrip())
        else:
            lines.append(f"  #{outcome.index + 1} FAILED {outcome.error}")
    return "\n".join(lines)


def run_preview(args: argparse.Namespace, catalog: InstrumentCatalog) -> int:
    result = generate_ladder(build_request(args, catalog), catalog)
    if not result.ok:
        print(result.message)
        return EXIT_REFUSED
    print(format_ladder_table(result))
    summary = summarize(result.entries, args.market_price, args.balance, result.direction, result.leverage)
    print(format_summary(summary, result.instrument))
    if args.hypothetical_price is not None:
        preview = preview_loss(
            result.entries,
            args.hypothetical_price,
            result.direction,
            args.stop_loss_enabled,
            args.balance if args.balance is not None else math.inf,
        )
        print(format_loss(preview))
    return 0


def run_submit(args: argparse.Namespace, config: AppConfig, catalog: InstrumentCatalog) -> int:
    result = generate_ladder(build_request(args, catalog), catalog)
    if not result.ok:
        print(result.message)
        return EXIT_REFUSED
    submission = config.submission.model_copy(update={"validate_only": args.validate or config.submission.validate_only})
    submitter = LadderSubmitter(DryRunGateway(), submission)
    report = submitter.submit(result, reduce_only=args.reduce_only)
    print(format_report(report))
    return 0 if report.ok else 1


def run_daily(args: argparse.Namespace, config: AppConfig, catalog: InstrumentCatalog) -> int:
    instrument = catalog.get_instrument(args.symbol)
    plan = config.daily_orders.get(instrument.symbol) if instrument is not None else None
    if plan is None:
        supported = ", ".join(sorted(config.daily_orders))
        print(f'Invalid coin "{args.symbol}". Supported coins are: {supported}')
        return EXIT_REFUSED
    result = build_daily_plan(
        symbol=instrument.symbol,
        market_price=args.market_price,
        trade_balance=args.balance,
        plan=plan,
        catalog=catalog,
    )
    if not result.ok:
        print(result.message)
        return EXIT_REFUSED
    print(format_ladder_table(result))
    summary = summarize(result.entries, args.market_price, args.balance, result.direction, result.leverage)
    print(format_summary(summary, result.instrument))
    if args.submit:
        report = LadderSubmitter(DryRunGateway(), config.submission).replace(result)
        print(format_report(report))
        return 0 if report.ok else 1
    return 0


def run(argv: list[str] | None = None) -> int:
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    config = resolve_config(_config_path_from_argv(argv))
    args = parse_args(argv, config)
    catalog = InstrumentCatalog.from_config(config)
    LOGGER.debug("Instruments configured: %s", ",".join(catalog.supported_symbols()))

    if args.command == "preview":
        return run_preview(args, catalog)
    if args.command == "submit":
        return run_submit(args, config, catalog)
    return run_daily(args, config, catalog)


if __name__ == "__main__":
    sys.exit(run())
