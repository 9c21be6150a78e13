"""
zkwallet command line — read-only inspection of accounts and the network.

Usage:
    zkwallet address --provider github --subject 42 --email a@b.c
    zkwallet balance 0x<64 hex>
    zkwallet history 0x<64 hex>
    zkwallet network

Environment variables (see ``load_config``) override the TOML file.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys

from zkwallet_core.config import WalletAppConfig, load_config
from zkwallet_core.errors import WalletError
from zkwallet_core.history import HistoryReconciler, most_recent_first
from zkwallet_core.identity import Identity, parse_provider
from zkwallet_core.keys import derive_direct_keypair, normalize_address
from zkwallet_core.ledger import LedgerView
from zkwallet_core.logging_config import setup_logging
from zkwallet_core.precision import format_amount
from zkwallet_core.rpc_client import SuiRpcClient

logger = logging.getLogger("zkwallet.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="zkwallet", description="zkwallet account tools")
    p.add_argument("--config", default=None, help="Path to zkwallet.toml config file")
    p.add_argument("--json", action="store_true", help="Print machine-readable output")
    sub = p.add_subparsers(dest="command", required=True)

    addr = sub.add_parser("address", help="Preview the direct-scheme address of an identity")
    addr.add_argument("--provider", required=True, choices=["github", "google"])
    addr.add_argument("--subject", required=True, help="Provider subject / user id")
    addr.add_argument("--email", default="", help="Email on the identity claim")

    bal = sub.add_parser("balance", help="Show the balance of an address")
    bal.add_argument("address")

    hist = sub.add_parser("history", help="Show recent transactions of an address")
    hist.add_argument("address")

    sub.add_parser("network", help="Show the configured network")
    return p.parse_args(argv)


def _emit(args: argparse.Namespace, data: dict, text: str) -> None:
    print(json.dumps(data, indent=2) if args.json else text)


def cmd_address(args: argparse.Namespace, cfg: WalletAppConfig) -> int:
    identity = Identity(
        subject=args.subject, email=args.email, provider=parse_provider(args.provider),
    )
    address = derive_direct_keypair(identity).address
    _emit(args, {"address": address, "scheme": "direct"}, address)
    return 0


async def cmd_balance(args: argparse.Namespace, cfg: WalletAppConfig) -> int:
    address = normalize_address(args.address)
    async with SuiRpcClient(cfg.network.rpc_url, cfg.network.request_timeout) as client:
        view = LedgerView(client, cfg.network.coin_type, cfg.network.request_timeout)
        coins = await view.coins_of(address)
    total = sum(c.balance for c in coins)
    _emit(
        args,
        {"address": address, "balance": total, "coins": len(coins)},
        f"{format_amount(total)} SUI in {len(coins)} coin(s)",
    )
    return 0


async def cmd_history(args: argparse.Namespace, cfg: WalletAppConfig) -> int:
    address = normalize_address(args.address)
    async with SuiRpcClient(cfg.network.rpc_url, cfg.network.request_timeout) as client:
        reconciler = HistoryReconciler(
            client, cfg.network.coin_type,
            cfg.session.history_page_size, cfg.network.request_timeout,
        )
        records = most_recent_first(await reconciler.reconcile(address))
    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return 0
    if not records:
        print("No transactions.")
    for r in records:
        amount = format_amount(r.amount) if r.amount_known else "?"
        print(f"{r.timestamp:%Y-%m-%d %H:%M}  {r.direction.value:<8} {amount:>14}  {r.status.value}  {r.id}")
    return 0


def cmd_network(args: argparse.Namespace, cfg: WalletAppConfig) -> int:
    data = {
        "network": cfg.network_name(),
        "rpc_url": cfg.network.rpc_url,
        "faucet": cfg.faucet_url() or None,
        "providers": [p.value for p in cfg.available_providers()],
        "strategy": cfg.wallet.strategy,
    }
    text = "\n".join(f"{k:<10} {v if v is not None else '-'}" for k, v in data.items())
    _emit(args, data, text)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(level=cfg.logging.level, fmt=cfg.logging.format, log_file=cfg.logging.file)

    try:
        if args.command == "address":
            return cmd_address(args, cfg)
        if args.command == "network":
            return cmd_network(args, cfg)
        with contextlib.suppress(KeyboardInterrupt):
            if args.command == "balance":
                return asyncio.run(cmd_balance(args, cfg))
            if args.command == "history":
                return asyncio.run(cmd_history(args, cfg))
    except WalletError as exc:
        logger.error(str(exc))
        print(f"  Error: {exc}", file=sys.stderr)
        return 1
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
