"""
Payment ledger persistence.

- LedgerStore: append-only payments, ordered promotions
- check_required_tables / require_ledger: startup readiness
- DiagnosticLogHandler: mirrors logs into diagnostic_logs
"""

from ledger.db import build_engine, build_session_factory, create_schema
from ledger.diagnostics import DiagnosticLogHandler
from ledger.readiness import (
    REQUIRED_LEDGER_TABLES,
    LedgerReadinessResult,
    LedgerUnavailableError,
    check_required_tables,
    require_ledger,
)
from ledger.store import DuplicatePaymentEventError, LedgerStore

__all__ = [
    "build_engine",
    "build_session_factory",
    "create_schema",
    "DiagnosticLogHandler",
    "REQUIRED_LEDGER_TABLES",
    "LedgerReadinessResult",
    "LedgerUnavailableError",
    "check_required_tables",
    "require_ledger",
    "DuplicatePaymentEventError",
    "LedgerStore",
]
