"""
Error taxonomy for the transfer ledger.

Every error carries the HTTP status the gateway answers with and a short
user-facing message.
"""

from __future__ import annotations


class CreditTransferError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(CreditTransferError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(CreditTransferError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(CreditTransferError):
    status_code = 403
    default_message = "You do not have permission for this transfer"


class NotFound(CreditTransferError):
    status_code = 404
    default_message = "Transfer not found"


class InvalidState(CreditTransferError):
    status_code = 400
    default_message = "This transfer was already processed"


class Expired(CreditTransferError):
    status_code = 400
    default_message = "This transfer has expired"


class InsufficientCredits(CreditTransferError):
    status_code = 400
    default_message = "Insufficient credits"


class Internal(CreditTransferError):
    status_code = 500
    default_message = "Internal error"
