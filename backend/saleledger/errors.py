# Overview: Error taxonomy shared by services and routes.

"""
Ledger errors.

Every business-rule failure aborts its atomic unit: the session is rolled
back before the error reaches the caller, so no partial state is visible.
Routes map ``http_status`` straight onto the JSON response.
"""


class LedgerError(Exception):
    """Base class for user-presentable ledger errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    http_status = 400


class NotFoundError(LedgerError):
    """Stock, sale, or payment absent for the tenant."""
    http_status = 404


class InactiveStockError(LedgerError):
    """Referenced stock is soft-deleted."""
    http_status = 409


class InsufficientStockError(LedgerError):
    """Requested quantity exceeds on-hand quantity."""
    http_status = 409


class InvalidStateError(LedgerError):
    """Operation not allowed in the sale's current payment status."""
    http_status = 409


class ConflictError(LedgerError):
    """409-level conflict (duplicate product code, sale number race)."""
    http_status = 409
