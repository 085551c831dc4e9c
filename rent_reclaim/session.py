"""Caller-facing facade for the scan-select-close workflow.

A session is bound to one owner, one config and one signer. It keeps the most
recent scan result, the caller's selection and donation percentage, and makes
scanning and submitting single-flight operations.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from rent_reclaim import builder, scanner
from rent_reclaim.config import DEFAULT_DONATION_PERCENTAGE, ReclaimConfig
from rent_reclaim.errors import BuildError, OperationInProgress, ReclaimError
from rent_reclaim.models import EmptyAccountRecord, FeeSplit, Percentage, check_percentage
from rent_reclaim.rpc import LedgerClient
from rent_reclaim.signer import Signer

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    SCANNED = "scanned"
    BUILDING = "building"
    SUBMITTED = "submitted"


class ReclaimSession:
    def __init__(
        self,
        config: ReclaimConfig,
        owner: str,
        signer: Optional[Signer] = None,
        *,
        ledger: Optional[LedgerClient] = None,
        donation_percentage: Percentage = DEFAULT_DONATION_PERCENTAGE,
    ) -> None:
        check_percentage(donation_percentage)
        self.config = config
        self.owner = str(owner)
        self.signer = signer
        self.ledger = ledger or LedgerClient(config.rpc_url)

        self._state = OperationState.IDLE
        self._records: Dict[str, EmptyAccountRecord] = {}
        self._selection: set[str] = set()
        self._donation_percentage: Percentage = donation_percentage
        self._last_signature: Optional[str] = None
        self._abandoned = False

        self._state_lock = threading.Lock()
        self._op_locks = {"scan": threading.Lock(), "close": threading.Lock()}

    # ---------------- State ----------------
    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def records(self) -> List[EmptyAccountRecord]:
        return list(self._records.values())

    @property
    def selection(self) -> frozenset[str]:
        return frozenset(self._selection)

    @property
    def selected_records(self) -> List[EmptyAccountRecord]:
        return [r for a, r in self._records.items() if a in self._selection]

    @property
    def last_signature(self) -> Optional[str]:
        return self._last_signature

    @property
    def donation_percentage(self) -> Percentage:
        return self._donation_percentage

    @donation_percentage.setter
    def donation_percentage(self, value: Percentage) -> None:
        check_percentage(value)
        self._donation_percentage = value

    def abandon(self) -> None:
        """Stop applying results of operations still in flight."""
        self._abandoned = True

    @contextmanager
    def _single_flight(self, kind: str) -> Iterator[None]:
        if self._abandoned:
            raise ReclaimError("Session was abandoned")
        lock = self._op_locks[kind]
        if not lock.acquire(blocking=False):
            raise OperationInProgress(f"A {kind} operation is already in progress")
        try:
            yield
        finally:
            lock.release()

    def _transition(self, *, expect: Iterable[OperationState], to: OperationState) -> OperationState:
        with self._state_lock:
            prev = self._state
            if prev not in set(expect):
                raise OperationInProgress(f"Cannot go from {prev.value} to {to.value}")
            self._state = to
            return prev

    def _set_state(self, state: OperationState) -> None:
        with self._state_lock:
            self._state = state

    # ---------------- Scan ----------------
    def scan(self) -> List[EmptyAccountRecord]:
        """Run a fresh scan, replacing the previous result and selection.

        Every found account starts out selected. On failure the previous
        result is left untouched.
        """
        with self._single_flight("scan"):
            prev = self._transition(
                expect=(OperationState.IDLE, OperationState.SCANNED, OperationState.SUBMITTED),
                to=OperationState.SCANNING,
            )
            try:
                records = scanner.scan(self.ledger, self.owner)
            except Exception:
                self._set_state(prev)
                raise

            if self._abandoned:
                self._set_state(prev)
                return records
            self._records = {r.address: r for r in records}
            self._selection = set(self._records)
            self._set_state(OperationState.SCANNED)
            return records

    # ---------------- Selection ----------------
    def _check_known(self, addresses: Iterable[str]) -> List[str]:
        addresses = [str(a) for a in addresses]
        unknown = [a for a in addresses if a not in self._records]
        if unknown:
            raise BuildError(f"Not in the current scan result: {', '.join(unknown)}")
        return addresses

    def select(self, addresses: Iterable[str]) -> None:
        self._selection.update(self._check_known(addresses))

    def deselect(self, addresses: Iterable[str]) -> None:
        self._selection.difference_update(self._check_known(addresses))

    def toggle(self, address: str) -> None:
        (address,) = self._check_known([address])
        self._selection ^= {address}

    def select_all(self) -> None:
        self._selection = set(self._records)

    def clear_selection(self) -> None:
        self._selection.clear()

    def fee_split(self) -> FeeSplit:
        return FeeSplit.for_records(self.selected_records, self._donation_percentage)

    # ---------------- Close ----------------
    def close_selected(self) -> str:
        """Close the selected accounts and return the confirmed signature."""
        with self._single_flight("close"):
            if self.signer is None:
                raise BuildError("No signer connected")
            selected = self.selected_records
            if not selected:
                raise BuildError("No accounts selected")
            split = self.fee_split()

            self._transition(
                expect=(OperationState.SCANNED, OperationState.SUBMITTED),
                to=OperationState.BUILDING,
            )
            try:
                signature = builder.close_and_reclaim(
                    self.ledger,
                    self.owner,
                    [r.address for r in selected],
                    self.signer,
                    self._donation_percentage,
                    self.config.donation_address,
                    per_account_lamports=split.per_account_lamports,
                )
            except Exception:
                self._set_state(OperationState.SCANNED)
                raise

            if not self._abandoned:
                for r in selected:
                    self._records.pop(r.address, None)
                    self._selection.discard(r.address)
                self._last_signature = signature
                self._set_state(OperationState.SUBMITTED)
            logger.info("Reclaimed %s SOL for %s in %s", split.user_amount, self.owner, signature)
            return signature

    def explorer_url(self, signature: Optional[str] = None) -> Optional[str]:
        signature = signature or self._last_signature
        return self.config.explorer_url(signature) if signature else None
