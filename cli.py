#!/usr/bin/env python3
"""Simple CLI for Stellar key and account chores during local development"""

import argparse
import asyncio
import sys

from galerie.config import settings
from galerie.core.errors import WalletError
from galerie.core.keys import derive_keypair, format_address, generate_keypair, is_valid_public_key
from galerie.logging_config import setup_logging
from galerie.providers.horizon import HorizonLedger


def print_keypair(keypair, label: str):
    print(f"\n🔑 {label}")
    print("=" * 50)
    print(f"Public key:  {keypair.public_key}")
    print(f"Secret seed: {keypair.secret_seed}")
    print("\n⚠️  Keep the secret seed private; anyone holding it controls the account.")


def cli_generate():
    print_keypair(generate_keypair(), "New random keypair")


def cli_derive(secret: str):
    keypair = derive_keypair(secret)
    print_keypair(keypair, "Derived keypair")
    print(f"Display:     {format_address(keypair.public_key)}")


async def cli_balance(address: str) -> int:
    print(f"🔍 Loading {format_address(address)} from {settings.horizon_url}...")
    account = await HorizonLedger().load_account(address)

    print("\nBalances:")
    print("-" * 50)
    for entry in account.balances:
        code = "XLM" if entry.is_native else entry.asset_code
        issuer = "" if entry.is_native else f"  ({format_address(entry.issuer)})"
        print(f"{entry.amount:>20} {code:<12}{issuer}")
    if account.sequence:
        print(f"\nSequence: {account.sequence}")
    return 0


async def cli_fund(address: str) -> int:
    if not settings.is_testnet:
        print("❌ Friendbot funding is only available on testnet")
        return 1
    print(f"💧 Funding {format_address(address)} via Friendbot...")
    result = await HorizonLedger().fund_account(address)
    print(f"✅ Funded in ledger {result.get('ledger')} (tx {result.get('hash')})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Galerie wallet CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    subparsers = parser.add_subparsers(dest="command")

    keys_parser = subparsers.add_parser("keys", help="Generate or derive Stellar keypairs")
    keys_sub = keys_parser.add_subparsers(dest="action")
    keys_sub.add_parser("generate", help="Generate a random keypair")
    derive_parser = keys_sub.add_parser("derive", help="Derive the keypair a login secret maps to")
    derive_parser.add_argument("secret", help="Provider secret (hex private key or S... seed)")

    account_parser = subparsers.add_parser("account", help="Query or fund ledger accounts")
    account_sub = account_parser.add_subparsers(dest="action")
    balance_parser = account_sub.add_parser("balance", help="Show an account's balances")
    balance_parser.add_argument("address", help="Stellar public key (G...)")
    fund_parser = account_sub.add_parser("fund", help="Fund a testnet account with Friendbot")
    fund_parser.add_argument("address", help="Stellar public key (G...)")

    return parser


async def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # stdout carries command output; logs go to stderr
    setup_logging(args.log_level or "WARNING", stream=sys.stderr)

    try:
        if args.command == "keys":
            if args.action == "generate":
                cli_generate()
            elif args.action == "derive":
                cli_derive(args.secret)
            else:
                parser.print_help()
            return 0

        if args.command == "account":
            if args.action not in ("balance", "fund"):
                parser.print_help()
                return 0
            if not is_valid_public_key(args.address):
                print(f"❌ Invalid Stellar public key: {args.address}")
                return 2
            if args.action == "balance":
                return await cli_balance(args.address)
            return await cli_fund(args.address)

    except WalletError as e:
        print(f"❌ Error: {e.message}")
        if e.context.suggested_action:
            print(f"   {e.context.suggested_action}")
        return 1

    print(f"❌ Unknown command: {args.command}")
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
