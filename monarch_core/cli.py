"""Command-line interface for Morpho market data and VaultV2 caps."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from .config import load_config
from .logging_setup import configure_logging
from .services import MarketDataService, VaultService
from .models import TransactionFilters
from .services.vault_service import apply_edit_document


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="monarch-core",
        description="Morpho Blue market data and VaultV2 cap management",
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

    markets = sub.add_parser("markets", help="List markets on all or one chain")
    markets.add_argument("--chain", type=int, default=None, help="Chain id")

    market = sub.add_parser("market", help="Show a single market")
    _market_args(market)

    for name, help_text in (
        ("supplies", "Supply/withdraw activity"),
        ("borrows", "Borrow/repay activity"),
    ):
        p = sub.add_parser(name, help=help_text)
        _market_args(p)
        _page_args(p)

    for name, help_text in (
        ("suppliers", "Largest supplier positions"),
        ("borrowers", "Largest borrower positions"),
    ):
        p = sub.add_parser(name, help=help_text)
        _market_args(p)
        _page_args(p)
        p.add_argument("--min-shares", default="0", help="Minimum shares (default: 0)")

    liquidations = sub.add_parser("liquidations", help="Liquidations of a market")
    _market_args(liquidations)

    positions = sub.add_parser("positions", help="A user's market positions")
    positions.add_argument("user", help="User address")
    positions.add_argument("--chain", type=int, default=None, help="Chain id")
    positions.add_argument("--market", default=None, help="Only this market (needs --chain)")

    history = sub.add_parser("history", help="A user's transaction history")
    history.add_argument("user", help="User address")
    history.add_argument("--chain", type=int, default=None, help="Chain id")
    history.add_argument(
        "--market", action="append", default=[], help="Market unique key (repeatable)"
    )
    history.add_argument("--since", type=int, default=None, help="Unix timestamp lower bound")
    history.add_argument("--until", type=int, default=None, help="Unix timestamp upper bound")
    _page_args(history)

    vault = sub.add_parser("vault", help="Show a VaultV2 and its caps")
    _vault_args(vault)

    plan = sub.add_parser("plan-caps", help="Plan cap mutations from an edits file")
    _vault_args(plan)
    plan.add_argument("edits", help="YAML file describing the desired caps")

    return parser


def _market_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("unique_key", help="Market unique key")
    p.add_argument("--chain", type=int, required=True, help="Chain id")


def _page_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--page", type=int, default=1, help="1-based page number (default: 1)")
    p.add_argument("--page-size", type=int, default=10, help="Page size (default: 10)")


def _vault_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("vault", help="Vault address or configured vault label")
    p.add_argument("--chain", type=int, default=None, help="Chain id")
    p.add_argument("--adapter", default=None, help="Adapter address override")


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _print_json(value: Any) -> None:
    print(json.dumps(_to_jsonable(value), indent=2, default=str))


def _skip(args: argparse.Namespace) -> int:
    return max(args.page - 1, 0) * args.page_size


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the exit code."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    markets = MarketDataService(config)

    if args.command == "markets":
        chain_ids = [args.chain] if args.chain is not None else None
        _print_json(await markets.fetch_all_markets(chain_ids))
    elif args.command == "market":
        result = await markets.fetch_market(args.unique_key, args.chain)
        if result is None:
            print(f"Market {args.unique_key} not found", file=sys.stderr)
            return 1
        _print_json(result)
    elif args.command == "supplies":
        _print_json(
            await markets.fetch_market_supplies(
                args.unique_key, args.chain, args.page_size, _skip(args)
            )
        )
    elif args.command == "borrows":
        _print_json(
            await markets.fetch_market_borrows(
                args.unique_key, args.chain, args.page_size, _skip(args)
            )
        )
    elif args.command == "suppliers":
        _print_json(
            await markets.fetch_market_suppliers(
                args.unique_key, args.chain, args.min_shares, args.page_size, _skip(args)
            )
        )
    elif args.command == "borrowers":
        _print_json(
            await markets.fetch_market_borrowers(
                args.unique_key, args.chain, args.min_shares, args.page_size, _skip(args)
            )
        )
    elif args.command == "liquidations":
        _print_json(await markets.fetch_market_liquidations(args.unique_key, args.chain))
    elif args.command == "positions":
        return await _run_positions(args, markets)
    elif args.command == "history":
        filters = TransactionFilters(
            user_address=args.user,
            market_unique_keys=tuple(args.market),
            timestamp_gte=args.since,
            timestamp_lte=args.until,
            skip=_skip(args),
            first=args.page_size,
        )
        chain_ids = [args.chain] if args.chain is not None else None
        _print_json(await markets.fetch_user_transactions(filters, chain_ids))
    elif args.command in ("vault", "plan-caps"):
        return await _run_vault(args, VaultService(config, market_service=markets))
    else:
        build_parser().print_help()
        return 1
    return 0


async def _run_positions(args: argparse.Namespace, markets: MarketDataService) -> int:
    if args.market is None:
        chain_ids = [args.chain] if args.chain is not None else None
        _print_json(await markets.fetch_user_positions(args.user, chain_ids))
        return 0
    if args.chain is None:
        print("--chain is required with --market", file=sys.stderr)
        return 1
    position = await markets.fetch_user_position(args.market, args.user, args.chain)
    if position is None:
        print(f"No position for {args.user} in market {args.market}", file=sys.stderr)
        return 1
    _print_json(position)
    return 0


async def _run_vault(args: argparse.Namespace, vaults: VaultService) -> int:
    address, chain_id, adapter = args.vault, args.chain, args.adapter
    configured = vaults.configured_vault(args.vault)
    if configured is not None:
        address = configured.address
        chain_id = chain_id or configured.chain_id
        adapter = adapter or configured.adapter or None
    if chain_id is None:
        print("--chain is required for unconfigured vaults", file=sys.stderr)
        return 1

    overview = await vaults.load_overview(address, chain_id, adapter)
    if overview is None:
        print(f"Vault {address} not found on chain {chain_id}", file=sys.stderr)
        return 1

    if args.command == "vault":
        _print_json(
            {
                "details": overview.details,
                "adapter": overview.adapter,
                "collateral_allocations": overview.collateral_allocations,
                "market_allocations": [
                    {
                        "market": a.market.unique_key,
                        "collateral": a.market.collateral_asset.symbol,
                        "relative_cap_percent": a.relative_cap_percent,
                        "cap": a.cap,
                    }
                    for a in overview.market_allocations
                ],
                "orphaned_market_caps": [m.cap for m in overview.caps.orphaned_market_caps()],
            }
        )
        return 0

    document = yaml.safe_load(Path(args.edits).read_text()) or {}
    try:
        desired = apply_edit_document(overview.edit_state, document, overview.markets)
    except (KeyError, ValueError) as e:
        print(f"Invalid edits file: {e}", file=sys.stderr)
        return 1

    plan = vaults.plan(overview.details, desired, overview.adapter)
    _print_json(
        {
            "status": plan.status.value,
            "warnings": list(plan.warnings),
            "mutations": plan.mutations,
        }
    )
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
