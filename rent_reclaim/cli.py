#!/usr/bin/env python3
"""Reclaim SOL locked as rent in *empty SPL token accounts* of one wallet.

Flow:
  1) Scan the wallet for token accounts with a zero balance
  2) Report each account and the reclaimable deposit, plus the donation split
  3) With --execute: close the selected accounts in ONE transaction, wait for
     confirmation and print the signature + explorer link

Safety:
  - Defaults to DRY RUN. Use --execute to broadcast the transaction.

Env:
  - KEYPAIR_PATH (keypair used to sign with --execute)
  - SOLANA_NETWORK (mainnet-beta | devnet)
  - RPC_URL or SOLANA_URL (optional override), HELIUS_API_KEY (optional)
  - DONATION_ADDRESS (required when --donation-percent > 0 and --execute)
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from rent_reclaim.config import DEFAULT_DONATION_PERCENTAGE, Network, ReclaimConfig
from rent_reclaim.errors import ReclaimError
from rent_reclaim.models import fmt_sol
from rent_reclaim.rpc import LedgerClient
from rent_reclaim.session import ReclaimSession
from rent_reclaim.signer import KeypairSigner, load_keypair_any


def _short(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Close empty token accounts of a wallet and reclaim their rent deposit."
    )
    ap.add_argument("--keypair", default=os.getenv("KEYPAIR_PATH", ""), help="Signer keypair path (env KEYPAIR_PATH)")
    ap.add_argument("--owner", default="", help="Wallet address to scan (dry run only; default: keypair pubkey)")
    ap.add_argument("--rpc-url", default="", help="RPC URL override (default: RPC_URL/SOLANA_URL/HELIUS_API_KEY)")
    ap.add_argument(
        "--network",
        choices=[n.value for n in Network],
        default=None,
        help="Cluster (default: env SOLANA_NETWORK or mainnet-beta)",
    )
    ap.add_argument(
        "--donation-percent",
        type=float,
        default=DEFAULT_DONATION_PERCENTAGE,
        help=f"Share of each reclaimed deposit donated, 0-100 (default: {DEFAULT_DONATION_PERCENTAGE})",
    )
    ap.add_argument("--donation-address", default="", help="Donation destination (default: env DONATION_ADDRESS)")
    ap.add_argument(
        "--select",
        nargs="+",
        default=None,
        metavar="ADDRESS",
        help="Only close these token accounts (default: every empty account found)",
    )
    ap.add_argument("--execute", action="store_true", help="Broadcast the transaction (default: dry run)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def _print_report(session: ReclaimSession) -> None:
    records = session.records
    print("-" * 80)
    print(f"Empty token accounts: {len(records)}")
    for r in records:
        mark = "x" if r.address in session.selection else " "
        print(f"  [{mark}] {r.mint_label:<4}  {r.address}  {r.reclaimable_amount:.5f} SOL")

    split = session.fee_split()
    print("-" * 80)
    print(f"Selected accounts:    {split.account_count}")
    print(f"Total recoverable:    {fmt_sol(split.total_lamports)} SOL")
    print(f"Donation ({split.donation_percentage:g}%):      {fmt_sol(split.donation_lamports)} SOL")
    print("=" * 30)
    print(f"YOU RECEIVE:          {fmt_sol(split.user_lamports)} SOL")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not 0 <= args.donation_percent <= 100:
        print(f"ERROR: --donation-percent must be within 0-100 (got {args.donation_percent:g})")
        return 2

    try:
        config = ReclaimConfig.from_env(
            network=args.network,
            rpc_url=args.rpc_url,
            donation_address=args.donation_address,
        )
    except ValueError as exc:
        print(f"ERROR: {exc}")
        return 2

    ledger = LedgerClient(config.rpc_url)
    signer: Optional[KeypairSigner] = None
    keypair_path = (args.keypair or "").strip()
    if keypair_path:
        path = Path(keypair_path).expanduser().resolve()
        if not path.exists():
            print(f"ERROR: keypair not found: {path}")
            return 2
        try:
            signer = KeypairSigner(load_keypair_any(path), ledger)
        except ValueError as exc:
            print(f"ERROR: failed to load keypair {path}: {exc}")
            return 2

    owner = (args.owner or "").strip() or (signer.pubkey() if signer else "")
    if not owner:
        print("ERROR: pass --keypair (or KEYPAIR_PATH) or --owner")
        return 2
    if args.execute and (signer is None or signer.pubkey() != owner):
        print("ERROR: --execute needs the keypair of the scanned wallet")
        return 2

    session = ReclaimSession(config, owner, signer, ledger=ledger, donation_percentage=args.donation_percent)

    print(f"RPC: {config.rpc_url}")
    print(f"Network: {config.network.label}")
    print(f"Wallet: {owner}")
    print(f"Mode: {'EXECUTE' if args.execute else 'DRY RUN'}")

    try:
        session.scan()
        if args.select is not None:
            session.clear_selection()
            session.select(args.select)
    except ReclaimError as exc:
        print(f"ERROR: {exc}")
        return 1

    _print_report(session)

    if not session.records:
        print("No empty token accounts to close.")
        return 0
    if not args.execute:
        print("DRY RUN: not broadcasting any transactions.")
        return 0

    print("-" * 80)
    print(f"Closing {len(session.selection)} accounts in one transaction...")
    try:
        sig = session.close_selected()
    except ReclaimError as exc:
        print(f"ERROR: {type(exc).__name__}: {exc}")
        return 1

    print(f"Confirmed: {sig}")
    print(f"Explorer:  {session.explorer_url(sig)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
