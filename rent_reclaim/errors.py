"""Error kinds surfaced to the caller.

Every error carries a human-readable message. None of them is fatal: the core
keeps no persistent state, so the caller may simply retry with a fresh call.
"""

from __future__ import annotations

from typing import Any


class ReclaimError(Exception):
    """Base class for every error raised by rent_reclaim."""


class ScanError(ReclaimError):
    """Token-account query or parse failure during a scan."""


class BuildError(ReclaimError):
    """Invalid input detected before anything was sent to the network."""


class SubmitError(ReclaimError):
    """Signer rejected the transaction or the broadcast failed."""


class ConfirmError(ReclaimError):
    """Transaction was broadcast but did not confirm cleanly."""

    def __init__(self, message: str, *, signature: str | None = None, err: Any = None) -> None:
        super().__init__(message)
        self.signature = signature
        self.err = err


class OperationInProgress(ReclaimError):
    """A second scan or submission was started while one is still pending."""
