"""Typed ledger errors and their client-visible codes."""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for every error a ledger operation raises on purpose."""

    status_code = 500
    code = "ledger_error"

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.context:
            payload["context"] = self.context
        return payload


class LedgerValidationError(LedgerError):
    status_code = 422
    code = "validation_error"


class LedgerNotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class LedgerConsistencyError(LedgerError):
    """An adjustment targeted a (vendor_id, service_name) with no balance row."""

    status_code = 409
    code = "consistency_error"


class InsufficientCreditsError(LedgerError):
    """A sale would drive remaining credits below zero under the reject policy."""

    status_code = 409
    code = "insufficient_credits"


class NestedTransactionError(LedgerError):
    code = "nested_transaction"


class LedgerPersistenceError(LedgerError):
    code = "persistence_error"
