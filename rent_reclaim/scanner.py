"""Account Scanner: find zero-balance token accounts and their reclaimable rent."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from solders.pubkey import Pubkey

from rent_reclaim.constants import TOKEN_ACCOUNT_SIZE, TOKEN_PROGRAM_ID
from rent_reclaim.errors import ScanError
from rent_reclaim.models import EmptyAccountRecord, fmt_sol
from rent_reclaim.rpc import LedgerClient, RpcError

logger = logging.getLogger(__name__)


def _is_zero_balance(token_amount: Dict[str, Any]) -> bool:
    # Some nodes report uiAmount as null for empty accounts.
    if "uiAmount" in token_amount:
        return float(token_amount["uiAmount"] or 0) == 0
    return int(token_amount["amount"]) == 0


def _is_closeable(info: Dict[str, Any], owner: str) -> bool:
    # Close if not frozen and closeAuthority is unset or owned by the wallet.
    return info.get("state") != "frozen" and info.get("closeAuthority") in (None, owner)


def _to_record(acc: Dict[str, Any], rent_lamports: int, owner: str) -> EmptyAccountRecord | None:
    info = acc["account"]["data"]["parsed"]["info"]
    if not _is_zero_balance(info["tokenAmount"]) or not _is_closeable(info, owner):
        return None
    return EmptyAccountRecord(
        address=str(acc["pubkey"]),
        mint_address=str(info["mint"]),
        reclaimable_lamports=rent_lamports,
    )


def scan(ledger: LedgerClient, owner_address: str) -> List[EmptyAccountRecord]:
    """Return every empty, closeable SPL token account owned by ``owner_address``.

    Read-only. Either the full result is returned or ScanError is raised;
    there is no partial result. Records are sorted by address.
    """
    try:
        owner = Pubkey.from_string(str(owner_address))
    except ValueError as e:
        raise ScanError(f"Invalid owner address: {owner_address!r}") from e

    try:
        accounts = ledger.get_token_accounts_by_owner(str(owner), TOKEN_PROGRAM_ID)
        rent_lamports = ledger.get_rent_exempt_minimum(TOKEN_ACCOUNT_SIZE)
    except RpcError as e:
        raise ScanError(f"Failed to query token accounts for {owner}: {e}") from e

    if rent_lamports <= 0:
        raise ScanError(f"Ledger reported a non-positive rent-exempt minimum: {rent_lamports}")

    records: List[EmptyAccountRecord] = []
    for acc in accounts:
        try:
            record = _to_record(acc, rent_lamports, str(owner))
        except (KeyError, TypeError, ValueError) as e:
            raise ScanError(f"Unexpected token account payload: {acc!r}") from e
        if record is not None:
            records.append(record)

    records.sort(key=lambda r: r.address)
    logger.info(
        "Scanned %s: %d token accounts, %d empty, %s SOL reclaimable",
        owner,
        len(accounts),
        len(records),
        fmt_sol(rent_lamports * len(records)),
    )
    return records
