"""
Shared fixtures: an in-memory ledger and signer.

No test talks to a real RPC node.
"""

from typing import Any, Dict, List, Optional

import pytest
from solders.keypair import Keypair

from rent_reclaim.rpc import BlockReference, ConfirmationOutcome, RpcError

RENT_LAMPORTS = 2_039_280


def new_address() -> str:
    return str(Keypair().pubkey())


def token_account(address: str, mint: str, ui_amount: Optional[float] = 0.0, amount: str = "0") -> Dict[str, Any]:
    """A getTokenAccountsByOwner (jsonParsed) entry."""
    return {
        "pubkey": address,
        "account": {
            "lamports": RENT_LAMPORTS,
            "data": {
                "program": "spl-token",
                "parsed": {
                    "type": "account",
                    "info": {
                        "mint": mint,
                        "owner": "unused",
                        "state": "initialized",
                        "tokenAmount": {"amount": amount, "decimals": 6, "uiAmount": ui_amount},
                    },
                },
            },
        },
    }


class FakeLedger:
    def __init__(self, accounts: Optional[List[Dict[str, Any]]] = None, rent: int = RENT_LAMPORTS) -> None:
        self.accounts = accounts or []
        self.rent = rent
        self.blockhash = new_address()
        self.last_valid_block_height = 1_000
        self.confirm_err: Any = None
        self.fail_on: set = set()
        self.calls: List[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RpcError(f"{name} unavailable")

    def get_token_accounts_by_owner(self, owner, program_id):
        self._record("get_token_accounts_by_owner")
        return list(self.accounts)

    def get_rent_exempt_minimum(self, data_len):
        self._record("get_rent_exempt_minimum")
        return self.rent

    def get_latest_block_reference(self, commitment="confirmed"):
        self._record("get_latest_block_reference")
        return BlockReference(self.blockhash, self.last_valid_block_height)

    def confirm_transaction(self, signature, block_ref, commitment="confirmed"):
        self._record("confirm_transaction")
        return ConfirmationOutcome(signature=signature, status="confirmed", err=self.confirm_err)


class FakeSigner:
    def __init__(self, signature: str = "5igfakeSignature", error: Optional[Exception] = None) -> None:
        self.signature = signature
        self.error = error
        self.transactions: List[Any] = []

    def sign_and_send(self, tx):
        self.transactions.append(tx)
        if self.error is not None:
            raise self.error
        return self.signature


@pytest.fixture
def owner() -> str:
    return new_address()


@pytest.fixture
def donation_address() -> str:
    return new_address()


@pytest.fixture
def empty_accounts() -> List[Dict[str, Any]]:
    return [token_account(new_address(), new_address()) for _ in range(3)]


@pytest.fixture
def ledger(empty_accounts) -> FakeLedger:
    return FakeLedger(empty_accounts)


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()
