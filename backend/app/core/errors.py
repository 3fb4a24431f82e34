from __future__ import annotations


class LedgerError(Exception):
    """Base error for ledger domain exceptions.

    ``status_code`` and ``code`` drive the HTTP translation done by the
    exception handlers registered in ``app.main``.
    """

    status_code: int = 400
    code: str = "ledger_error"
    retryable: bool = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(LedgerError):
    """Malformed input: bad amount, currency mismatch, missing linkage."""

    status_code = 400
    code = "validation_error"


class NotFound(LedgerError):
    status_code = 404
    code = "not_found"


class PermissionDenied(LedgerError):
    """Actor lacks the permission required for the requested mutation."""

    status_code = 403
    code = "permission_denied"


class InvalidStateTransition(LedgerError):
    """Approve/reject on a terminal transaction, or a self-transfer."""

    status_code = 409
    code = "invalid_state_transition"


class InsufficientBalance(LedgerError):
    status_code = 409
    code = "insufficient_balance"


class ConcurrentUpdate(LedgerError):
    """Another writer changed the row between read and write."""

    status_code = 409
    code = "concurrent_update"
    retryable = True


class UpstreamFailure(LedgerError):
    """Persistence, attachment or rate-provider collaborator failed."""

    status_code = 503
    code = "upstream_failure"
    retryable = True
