"""Domain errors raised by the ledger services"""
from typing import Any, Dict, Optional

from fastapi import status


class LedgerError(Exception):
    """Base exception for ledger errors"""
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(LedgerError):
    """Referenced record does not exist"""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class LedgerValidationError(LedgerError):
    """Input violates a domain rule"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class InvalidTransitionError(LedgerError):
    """Status change not allowed from the current status"""
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"


class InvalidTransactionError(LedgerError):
    """Transaction cannot back the requested operation"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_TRANSACTION"


class InsufficientFundsError(LedgerError):
    """Wallet balance is lower than the debit"""
    status_code = status.HTTP_409_CONFLICT
    code = "INSUFFICIENT_FUNDS"


class StorageUnavailableError(LedgerError):
    """Storage kept failing after all retry attempts"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "UNAVAILABLE"
