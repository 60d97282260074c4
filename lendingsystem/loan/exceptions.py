"""Errors raised by the ledger engine."""


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    status_code = 500

    def __init__(self, message, error=None):
        super().__init__(message)
        self.message = message
        self.error = error


class InvalidInput(LedgerError):
    """Raised when client-supplied values fail validation."""

    status_code = 400


class NotFound(LedgerError):
    """Raised when a referenced loan or customer does not exist."""

    status_code = 404


class InvalidState(LedgerError):
    """Raised when the operation is not permitted in the loan's current status."""

    status_code = 400


class StorageError(LedgerError):
    """Raised when a persistence call or transaction fails."""

    status_code = 500
