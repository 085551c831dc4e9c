"""Transaction Builder/Submitter.

Turns a selection of empty token accounts into one atomic transaction: a
CloseAccount instruction per account, each optionally followed by a system
transfer of the donation share. The ledger executes the transaction as a
unit, so either every account is closed or none is.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from rent_reclaim.constants import (
    CLOSE_ACCOUNT_IX,
    CONFIRMED,
    PACKET_DATA_SIZE,
    TOKEN_ACCOUNT_SIZE,
    TOKEN_PROGRAM_ID,
)
from rent_reclaim.errors import BuildError, ConfirmError, SubmitError
from rent_reclaim.models import Percentage, check_percentage, donation_share, fmt_sol
from rent_reclaim.rpc import LedgerClient, RpcError, TransactionExpired
from rent_reclaim.signer import Signer

logger = logging.getLogger(__name__)


# ---------------- Instruction builders ----------------
def build_transfer_ix(from_pubkey: Pubkey, to_pubkey: Pubkey, lamports: int) -> Instruction:
    return transfer(TransferParams(from_pubkey=from_pubkey, to_pubkey=to_pubkey, lamports=int(lamports)))


def build_close_token_account_ix(
    token_account: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        program_id=token_program_id,
        accounts=[
            AccountMeta(pubkey=token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
            AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
        ],
        data=CLOSE_ACCOUNT_IX,
    )


def build_reclaim_instructions(
    owner: Pubkey,
    token_accounts: Sequence[Pubkey],
    per_account_lamports: int,
    donation_percentage: Percentage = 0,
    donation_address: Optional[Pubkey] = None,
) -> List[Instruction]:
    """Close each account into ``owner``; pair each close with its donation transfer.

    The transfer must follow its close: it spends lamports the close just
    released into the owner's wallet.
    """
    donate = donation_percentage > 0
    if donate and donation_address is None:
        raise BuildError("donation destination not configured")
    donation_lamports = donation_share(per_account_lamports, donation_percentage) if donate else 0

    ixes: List[Instruction] = []
    for account in token_accounts:
        ixes.append(build_close_token_account_ix(account, destination=owner, authority=owner))
        if donate:
            ixes.append(build_transfer_ix(owner, donation_address, donation_lamports))
    return ixes


def build_transaction(owner: Pubkey, instructions: Sequence[Instruction], blockhash: str) -> Transaction:
    """Assemble an unsigned transaction paid for by ``owner``."""
    if not instructions:
        raise BuildError("No instructions to send")
    msg = Message.new_with_blockhash(list(instructions), owner, Hash.from_string(blockhash))
    return Transaction.new_unsigned(msg)


def transaction_size(
    owner: Pubkey,
    token_accounts: Sequence[Pubkey],
    donation_percentage: Percentage = 0,
    donation_address: Optional[Pubkey] = None,
) -> int:
    """Serialized size of the reclaim transaction, signature slot included.

    Lamport amounts and the blockhash are fixed-width, so placeholders give
    the exact size before anything is fetched from the ledger.
    """
    ixes = build_reclaim_instructions(owner, token_accounts, 0, donation_percentage, donation_address)
    msg = Message.new_with_blockhash(ixes, owner, Hash.default())
    return len(bytes(Transaction.new_unsigned(msg)))


def max_accounts_per_transaction(
    owner: Pubkey,
    token_accounts: Sequence[Pubkey],
    donation_percentage: Percentage = 0,
    donation_address: Optional[Pubkey] = None,
) -> int:
    """How many of ``token_accounts`` (in order) fit in one transaction."""
    lo, hi = 0, len(token_accounts)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        size = transaction_size(owner, token_accounts[:mid], donation_percentage, donation_address)
        if size <= PACKET_DATA_SIZE:
            lo = mid
        else:
            hi = mid - 1
    return lo


# ---------------- Validation ----------------
def _parse_pubkey(value: str, what: str) -> Pubkey:
    try:
        return Pubkey.from_string(str(value))
    except ValueError as e:
        raise BuildError(f"Malformed {what}: {value!r}") from e


def _validate(
    owner_key: str,
    selected_addresses: Iterable[str],
    donation_percentage: Percentage,
    donation_address: Optional[str],
) -> tuple[Pubkey, List[Pubkey], Optional[Pubkey]]:
    selected = list(selected_addresses)
    if not selected:
        raise BuildError("No accounts selected")
    if len(set(selected)) != len(selected):
        raise BuildError("Selection contains duplicate accounts")
    try:
        check_percentage(donation_percentage)
    except ValueError as e:
        raise BuildError(str(e)) from e

    owner = _parse_pubkey(owner_key, "owner address")
    accounts = [_parse_pubkey(a, "token account address") for a in selected]

    donation: Optional[Pubkey] = None
    if donation_percentage > 0:
        if not (donation_address or "").strip():
            raise BuildError("donation destination not configured")
        donation = _parse_pubkey(donation_address.strip(), "donation address")

    size = transaction_size(owner, accounts, donation_percentage, donation)
    if size > PACKET_DATA_SIZE:
        fit = max_accounts_per_transaction(owner, accounts, donation_percentage, donation)
        raise BuildError(
            f"Transaction too large ({size} > {PACKET_DATA_SIZE} bytes): "
            f"select at most {fit} accounts at {donation_percentage}% donation"
        )
    return owner, accounts, donation


# ---------------- Submission ----------------
def close_and_reclaim(
    ledger: LedgerClient,
    owner_key: str,
    selected_addresses: Iterable[str],
    signer: Signer,
    donation_percentage: Percentage = 0,
    donation_address: Optional[str] = None,
    *,
    per_account_lamports: Optional[int] = None,
) -> str:
    """Close the selected accounts in one transaction and return its signature.

    Input is validated before any network call. The signature is returned only
    once the transaction is confirmed without an execution error.
    """
    owner, accounts, donation = _validate(owner_key, selected_addresses, donation_percentage, donation_address)

    try:
        block_ref = ledger.get_latest_block_reference(CONFIRMED)
        if per_account_lamports is None:
            per_account_lamports = ledger.get_rent_exempt_minimum(TOKEN_ACCOUNT_SIZE)
    except RpcError as e:
        raise SubmitError(f"Could not prepare transaction: {e}") from e

    ixes = build_reclaim_instructions(owner, accounts, per_account_lamports, donation_percentage, donation)
    tx = build_transaction(owner, ixes, block_ref.blockhash)
    logger.info(
        "Closing %d accounts for %s (%d instructions, donation %s%% = %s SOL)",
        len(accounts),
        owner,
        len(ixes),
        donation_percentage,
        fmt_sol(donation_share(per_account_lamports, donation_percentage) * len(accounts)),
    )

    try:
        signature = signer.sign_and_send(tx)
    except Exception as e:
        raise SubmitError(f"Signing or broadcast failed: {e}") from e
    logger.info("Submitted %s, awaiting %s commitment", signature, CONFIRMED)

    try:
        outcome = ledger.confirm_transaction(signature, block_ref, CONFIRMED)
    except TransactionExpired as e:
        raise ConfirmError(str(e), signature=signature) from e
    except RpcError as e:
        raise ConfirmError(f"Could not confirm {signature}: {e}", signature=signature) from e

    if not outcome.ok:
        raise ConfirmError(f"Transaction {signature} failed: {outcome.err}", signature=signature, err=outcome.err)

    logger.info("Confirmed %s", signature)
    return signature
