"""Domain errors raised by the ledger, wallet, referral and mission services.

Routers never catch these individually: the global error handler maps each
class to an HTTP status via ``status_code`` and returns ``{"detail", "code"}``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for business-rule failures. Nothing has been committed."""

    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(LedgerError, ValueError):
    """Bad input (amount, address, minimums). Reported before any state is touched."""

    code = "validation_failed"


class NotFound(LedgerError):
    status_code = 404
    code = "not_found"


class PreconditionFailed(LedgerError):
    """State changed underneath the caller; the operation was aborted as a whole."""

    status_code = 409
    code = "precondition_failed"


class InsufficientBalance(PreconditionFailed):
    code = "insufficient_balance"


class TransactionNotPending(PreconditionFailed):
    code = "transaction_not_pending"


class InvalidMissionTransition(PreconditionFailed):
    code = "invalid_mission_transition"


class DuplicateRequest(ValidationFailed):
    """An identical pending withdrawal was submitted moments ago."""

    code = "duplicate_request"
