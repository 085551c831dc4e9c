"""Ledger query capability: a thin Solana JSON-RPC client over urllib."""

from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from solders.pubkey import Pubkey

from rent_reclaim.constants import CONFIRMED, FINALIZED

logger = logging.getLogger(__name__)

_COMMITMENT_LEVELS = {
    "processed": {"processed", CONFIRMED, FINALIZED},
    CONFIRMED: {CONFIRMED, FINALIZED},
    FINALIZED: {FINALIZED},
}


class RpcError(RuntimeError):
    """JSON-RPC transport failure or an error object in the response."""


class TransactionExpired(RpcError):
    """Block height passed the blockhash validity horizon before confirmation."""


@dataclass(frozen=True, slots=True)
class BlockReference:
    blockhash: str
    last_valid_block_height: int


@dataclass(frozen=True, slots=True)
class ConfirmationOutcome:
    signature: str
    status: Optional[str]
    err: Any = None

    @property
    def ok(self) -> bool:
        return self.err is None


def _as_int(value: Any, what: str) -> int:
    if value is None or isinstance(value, bool):
        raise RpcError(f"{what} returned no usable integer: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RpcError(f"{what} returned no usable integer: {value!r}") from e


def rpc_call(rpc_url: str, method: str, params: list, *, timeout: float = 30, max_retries: int = 4) -> Any:
    """Raw JSON-RPC helper; backs off on HTTP 429, returns the ``result`` member."""
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(rpc_url, data=data, headers={"Content-Type": "application/json"})

    for attempt in range(1, max_retries + 1):
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                out = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code == 429 and attempt < max_retries:
                logger.debug("RPC %s rate limited, attempt %d/%d", method, attempt, max_retries)
                time.sleep(min(2 * attempt, 10))
                continue
            try:
                body = e.read().decode("utf-8", errors="replace")
            except Exception:
                body = ""
            raise RpcError(f"RPC HTTPError {e.code} {e.reason}: {body}") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise RpcError(f"RPC call {method} failed: {e}") from e

        if "error" in out:
            raise RpcError(f"RPC error from {method}: {out['error']}")
        return out.get("result")

    raise RpcError(f"RPC call {method} still rate limited after {max_retries} attempts")


class LedgerClient:
    """The subset of Solana RPC the reclaim workflow needs."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 30,
        max_retries: int = 4,
        poll_interval: float = 0.5,
    ) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.poll_interval = poll_interval

    def __repr__(self) -> str:
        return f"LedgerClient({self.rpc_url!r})"

    def call(self, method: str, params: list) -> Any:
        return rpc_call(self.rpc_url, method, params, timeout=self.timeout, max_retries=self.max_retries)

    def get_token_accounts_by_owner(self, owner: str, program_id: Union[Pubkey, str]) -> List[Dict[str, Any]]:
        result = self.call(
            "getTokenAccountsByOwner",
            [str(owner), {"programId": str(program_id)}, {"encoding": "jsonParsed"}],
        )
        if not isinstance(result, dict):
            raise RpcError(f"getTokenAccountsByOwner returned no result: {result!r}")
        return list(result.get("value") or [])

    def get_rent_exempt_minimum(self, data_len: int) -> int:
        result = self.call("getMinimumBalanceForRentExemption", [int(data_len)])
        return _as_int(result, "getMinimumBalanceForRentExemption")

    def get_latest_block_reference(self, commitment: str = CONFIRMED) -> BlockReference:
        result = self.call("getLatestBlockhash", [{"commitment": commitment}])
        value = (result if isinstance(result, dict) else {}).get("value") or {}
        bh = value.get("blockhash")
        if not bh:
            raise RpcError(f"getLatestBlockhash failed: {result!r}")
        height = _as_int(value.get("lastValidBlockHeight"), "getLatestBlockhash lastValidBlockHeight")
        return BlockReference(blockhash=str(bh), last_valid_block_height=height)

    def get_block_height(self, commitment: str = CONFIRMED) -> int:
        return _as_int(self.call("getBlockHeight", [{"commitment": commitment}]), "getBlockHeight")

    def send_raw_transaction(self, raw: bytes, *, skip_preflight: bool = False) -> str:
        tx_b64 = base64.b64encode(raw).decode("utf-8")
        sig = self.call(
            "sendTransaction",
            [
                tx_b64,
                {
                    "encoding": "base64",
                    "skipPreflight": bool(skip_preflight),
                    "preflightCommitment": CONFIRMED,
                },
            ],
        )
        if not sig:
            raise RpcError("sendTransaction returned no signature")
        return str(sig)

    def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        result = self.call("getSignatureStatuses", [[signature], {"searchTransactionHistory": True}])
        val = ((result if isinstance(result, dict) else {}).get("value") or [None])[0]
        if val is not None and not isinstance(val, dict):
            raise RpcError(f"getSignatureStatuses returned an unexpected status: {val!r}")
        return val

    def _check_status(self, signature: str, accepted: set) -> Optional[ConfirmationOutcome]:
        val = self.get_signature_status(signature)
        if val is None:
            return None
        status = (val.get("confirmationStatus") or "").lower() or None
        err = val.get("err")
        if err:
            return ConfirmationOutcome(signature=signature, status=status, err=err)
        if status in accepted:
            return ConfirmationOutcome(signature=signature, status=status)
        return None

    def confirm_transaction(
        self,
        signature: str,
        block_ref: BlockReference,
        commitment: str = CONFIRMED,
    ) -> ConfirmationOutcome:
        """Poll until ``signature`` reaches ``commitment`` or its blockhash expires.

        An on-chain execution error is returned in the outcome, not raised.
        The status is read once more after the horizon passes.
        """
        accepted = _COMMITMENT_LEVELS[commitment]
        while True:
            outcome = self._check_status(signature, accepted)
            if outcome is not None:
                return outcome
            if self.get_block_height(commitment) > block_ref.last_valid_block_height:
                outcome = self._check_status(signature, accepted)
                if outcome is not None:
                    return outcome
                raise TransactionExpired(
                    f"Transaction {signature} expired: block height exceeded {block_ref.last_valid_block_height}"
                )
            time.sleep(self.poll_interval)
