"""Typed errors raised by the ledger services.

Services raise these; the HTTP layer maps them to responses via
``ledger_engine.core.observability.ledger_error_handler``. Every mutation runs
inside ``ledger_engine.database.transactional`` so any of these aborts the
whole unit of work.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(LedgerError):
    """Missing/inconsistent input, over-allocation, invalid transition, currency failure."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class DataStoreError(LedgerError):
    """Underlying store failure. Never shown to clients verbatim."""

    code = "DB_ERROR"
    status_code = 500
