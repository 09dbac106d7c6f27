"""Schema readiness checks for the ledger tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Without these the service cannot record payments or diagnostics.
REQUIRED_LEDGER_TABLES = (
    "payments",
    "diagnostic_logs",
)

# Missing promotions table only means no promotion is ever active.
OPTIONAL_LEDGER_TABLES = (
    "promotions",
)


class LedgerUnavailableError(RuntimeError):
    """Required ledger structures are missing. Fatal at startup."""

    def __init__(self, missing_tables: list[str]):
        super().__init__(
            "Required ledger tables are missing: " + ", ".join(missing_tables)
        )
        self.missing_tables = missing_tables


@dataclass(frozen=True)
class LedgerReadinessResult:
    ready: bool
    missing_tables: list[str]
    checked_tables: list[str]
    missing_optional_tables: list[str]


def check_required_tables(
    engine: Engine,
    required_tables: Iterable[str] = REQUIRED_LEDGER_TABLES,
    optional_tables: Iterable[str] = OPTIONAL_LEDGER_TABLES,
) -> LedgerReadinessResult:
    """Check whether the ledger tables exist in the current database."""
    checked = list(required_tables)
    try:
        inspector = inspect(engine)
        missing = [name for name in checked if not inspector.has_table(name)]
        missing_optional = [name for name in optional_tables if not inspector.has_table(name)]
    except SQLAlchemyError:
        logger.exception("Failed checking ledger tables")
        raise

    return LedgerReadinessResult(
        ready=len(missing) == 0,
        missing_tables=missing,
        checked_tables=checked,
        missing_optional_tables=missing_optional,
    )


def require_ledger(engine: Engine) -> LedgerReadinessResult:
    result = check_required_tables(engine)
    if not result.ready:
        logger.critical("Ledger is not ready", extra={"missing_tables": result.missing_tables})
        raise LedgerUnavailableError(result.missing_tables)
    if result.missing_optional_tables:
        logger.warning("Optional ledger tables missing", extra={
            "missing_tables": result.missing_optional_tables,
        })
    return result
