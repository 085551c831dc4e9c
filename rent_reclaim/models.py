from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable, Union

from rent_reclaim.constants import LAMPORTS_PER_SOL

Percentage = Union[int, float]


# ---------------- Lamport helpers ----------------
def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def fmt_sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.9f}".rstrip("0").rstrip(".") or "0"


def check_percentage(percentage: Percentage) -> None:
    if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
        raise ValueError(f"donation percentage must be a number (got {percentage!r})")
    if math.isnan(percentage) or not 0 <= percentage <= 100:
        raise ValueError(f"donation percentage must be within [0, 100] (got {percentage})")


def donation_share(lamports: int, percentage: Percentage) -> int:
    """floor(lamports * percentage / 100), computed exactly."""
    check_percentage(percentage)
    return math.floor(Fraction(int(lamports)) * Fraction(str(percentage)) / 100)


# ---------------- Data structures ----------------
@dataclass(frozen=True, slots=True)
class EmptyAccountRecord:
    """A zero-balance token account whose rent deposit can be reclaimed."""

    address: str
    mint_address: str
    reclaimable_lamports: int

    @property
    def mint_label(self) -> str:
        return self.mint_address[:4]

    @property
    def reclaimable_amount(self) -> float:
        return lamports_to_sol(self.reclaimable_lamports)


@dataclass(frozen=True, slots=True)
class FeeSplit:
    """How the reclaimed deposits are divided between owner and donation.

    The donation is floored per account rather than once on the aggregate, so
    the totals match what the transfer instructions actually move.
    """

    per_account_lamports: int
    account_count: int
    donation_percentage: Percentage = 0

    def __post_init__(self) -> None:
        check_percentage(self.donation_percentage)
        if self.account_count < 0:
            raise ValueError("account_count must not be negative")

    @classmethod
    def for_records(cls, records: Iterable[EmptyAccountRecord], donation_percentage: Percentage = 0) -> "FeeSplit":
        records = list(records)
        if not records:
            return cls(per_account_lamports=0, account_count=0, donation_percentage=donation_percentage)
        deposits = {r.reclaimable_lamports for r in records}
        if len(deposits) != 1:
            raise ValueError("records do not share a single rent-exempt deposit")
        return cls(
            per_account_lamports=deposits.pop(),
            account_count=len(records),
            donation_percentage=donation_percentage,
        )

    @property
    def donation_per_account(self) -> int:
        return donation_share(self.per_account_lamports, self.donation_percentage)

    @property
    def total_lamports(self) -> int:
        return self.per_account_lamports * self.account_count

    @property
    def donation_lamports(self) -> int:
        return self.donation_per_account * self.account_count

    @property
    def user_lamports(self) -> int:
        return self.total_lamports - self.donation_lamports

    @property
    def total_recoverable(self) -> float:
        return lamports_to_sol(self.total_lamports)

    @property
    def donation_amount(self) -> float:
        return lamports_to_sol(self.donation_lamports)

    @property
    def user_amount(self) -> float:
        return lamports_to_sol(self.user_lamports)
