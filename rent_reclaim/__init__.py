"""Close empty SPL token accounts and reclaim their rent deposit."""

from rent_reclaim.config import Network, ReclaimConfig, explorer_url
from rent_reclaim.errors import (
    BuildError,
    ConfirmError,
    OperationInProgress,
    ReclaimError,
    ScanError,
    SubmitError,
)
from rent_reclaim.models import EmptyAccountRecord, FeeSplit
from rent_reclaim.rpc import LedgerClient
from rent_reclaim.scanner import scan
from rent_reclaim.builder import close_and_reclaim
from rent_reclaim.session import OperationState, ReclaimSession

__version__ = "0.1.0"

__all__ = [
    "BuildError",
    "ConfirmError",
    "EmptyAccountRecord",
    "FeeSplit",
    "LedgerClient",
    "Network",
    "OperationInProgress",
    "OperationState",
    "ReclaimConfig",
    "ReclaimError",
    "ReclaimSession",
    "ScanError",
    "SubmitError",
    "close_and_reclaim",
    "explorer_url",
    "scan",
]
