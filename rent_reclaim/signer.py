"""Signer capability and a local keypair implementation of it."""

from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Protocol

from solders.keypair import Keypair
from solders.transaction import Transaction

from rent_reclaim.rpc import LedgerClient


class Signer(Protocol):
    """Signs an unsigned transaction, broadcasts it, and returns the signature.

    The core never looks at a signer beyond this one call.
    """

    def sign_and_send(self, tx: Transaction) -> str: ...


class KeypairSigner:
    def __init__(self, keypair: Keypair, ledger: LedgerClient, *, skip_preflight: bool = False) -> None:
        self.keypair = keypair
        self.ledger = ledger
        self.skip_preflight = skip_preflight

    def pubkey(self) -> str:
        return str(self.keypair.pubkey())

    def sign_and_send(self, tx: Transaction) -> str:
        tx.sign([self.keypair], tx.message.recent_blockhash)
        return self.ledger.send_raw_transaction(bytes(tx), skip_preflight=self.skip_preflight)


# ---------------- Keypair loading ----------------
def load_keypair_any(path: Path) -> Keypair:
    """Load a solana-keygen style keypair from .json or .json.gz.

    Supports:
      - JSON array of 64 ints (Solana CLI default)
      - JSON string holding the base58 encoding of the 64 raw bytes
    """
    path = Path(path)
    if path.name.endswith(".json.gz") or path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8") as fh:
            payload = json.load(fh)
    else:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)

    if isinstance(payload, list):
        raw = bytes(int(x) for x in payload)
        if len(raw) != 64:
            raise ValueError(f"Keypair must be 64 bytes (got {len(raw)}): {path}")
        return Keypair.from_bytes(raw)
    if isinstance(payload, str):
        return Keypair.from_base58_string(payload.strip())
    raise ValueError(f"Unsupported keypair format: {path}")
