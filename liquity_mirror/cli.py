"""Command-line interface for the Liquity mirror."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .fixed_point import FixedPointDecimal
from .logging_setup import configure_logging
from .models import Pool, StabilityDeposit, Trove
from .services import LiquityService


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="liquity-mirror",
        description="Read and watch Liquity protocol state",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("price", help="Current collateral price")
    sub.add_parser("pool", help="Protocol-wide totals and recovery mode")

    trove_parser = sub.add_parser("trove", help="Trove with pending rewards applied")
    trove_parser.add_argument("address", nargs="?", default=None)

    deposit_parser = sub.add_parser("deposit", help="Stability pool deposit")
    deposit_parser.add_argument("address", nargs="?", default=None)

    hint_parser = sub.add_parser("hint", help="Insertion hint for a trove")
    hint_parser.add_argument("--collateral", required=True)
    hint_parser.add_argument("--debt", required=True)
    hint_parser.add_argument("--address", default=None)

    watch_parser = sub.add_parser("watch", help="Print updates until interrupted")
    watch_parser.add_argument("target", choices=["trove", "deposit", "price"])
    watch_parser.add_argument("address", nargs="?", default=None)

    return parser


def _percent(ratio: FixedPointDecimal) -> str:
    if ratio.is_infinite:
        return ratio.to_string()
    return f"{ratio.mul(100).prettify(1)}%"


def format_trove(trove: Trove, price: FixedPointDecimal) -> str:
    return (
        f"Collateral: {trove.collateral.prettify(4)} ETH\n"
        f"Debt: {trove.debt.prettify(2)}\n"
        f"Collateral ratio: {_percent(trove.collateral_ratio(price))}"
    )


def format_deposit(deposit: StabilityDeposit) -> str:
    return (
        f"Deposit: {deposit.deposit.prettify(2)}\n"
        f"Pending gain: {deposit.pending_collateral_gain.prettify(4)} ETH\n"
        f"Pending loss: {deposit.pending_deposit_loss.prettify(2)}"
    )


def format_pool(pool: Pool, price: FixedPointDecimal) -> str:
    mode = "ACTIVE" if pool.is_recovery_mode_active(price) else "inactive"
    return (
        f"Total collateral: {pool.total_collateral.shorten()} ETH\n"
        f"Total debt: {pool.total_debt.shorten()}\n"
        f"Total collateral ratio: {_percent(pool.total_collateral_ratio(price))}\n"
        f"Recovery mode: {mode}"
    )


async def _watch(service: LiquityService, args: argparse.Namespace) -> None:
    if args.target == "trove":
        subscription = service.watch_trove(
            lambda trove: print(f"Trove: {trove.collateral} / {trove.debt}"),
            args.address,
        )
    elif args.target == "deposit":
        subscription = service.watch_stability_deposit(
            lambda deposit: print(format_deposit(deposit)), args.address
        )
    else:
        subscription = service.watch_price(lambda price: print(f"Price: {price.prettify()}"))

    try:
        await asyncio.Event().wait()
    finally:
        subscription.unsubscribe()


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    service = LiquityService.from_config(config)

    if args.command == "price":
        print(f"Price: {(await service.get_price()).prettify()}")
    elif args.command == "trove":
        block = await service.get_block_number()
        trove, price = await asyncio.gather(
            service.get_trove(args.address, block), service.get_price(block)
        )
        print(format_trove(trove, price))
    elif args.command == "deposit":
        print(format_deposit(await service.get_stability_deposit(args.address)))
    elif args.command == "pool":
        block = await service.get_block_number()
        pool, price = await asyncio.gather(service.get_pool(block), service.get_price(block))
        print(format_pool(pool, price))
    elif args.command == "hint":
        trove = Trove(
            collateral=FixedPointDecimal.from_string(args.collateral),
            debt=FixedPointDecimal.from_string(args.debt),
        )
        hint = await service.find_hint(trove, await service.get_price(), args.address)
        print(f"Upper: {hint.upper}\nLower: {hint.lower}")
    elif args.command == "watch":
        await _watch(service, args)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass
