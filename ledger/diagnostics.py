"""
Logging handler that mirrors log records into the diagnostic_logs table.

Operators read this table the way they used to read an error-log sheet. It
is append-only and never consulted for entitlement decisions. Structured
`extra={...}` context is kept in the stored message as key=value pairs.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from sqlalchemy.orm import sessionmaker

from ledger.models import DiagnosticLog

MAX_MESSAGE_LENGTH = 2000

# Attributes every LogRecord carries; anything else arrived through `extra`.
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class DiagnosticFormatter(logging.Formatter):
    """`<message> | key=value key=value` for each extra field, in logged order."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        extras = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
        ]
        if extras:
            message = f"{message} | {' '.join(extras)}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class DiagnosticLogHandler(logging.Handler):
    def __init__(self, session_factory: sessionmaker, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._session_factory = session_factory
        self._local = threading.local()
        self.setFormatter(DiagnosticFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        # SQLAlchemy logs through `logging` too; a write here must not recurse.
        if getattr(self._local, "active", False) or record.name.startswith("sqlalchemy"):
            return
        self._local.active = True
        try:
            session = self._session_factory()
            try:
                session.add(DiagnosticLog(
                    created_at=datetime.fromtimestamp(record.created, tz=timezone.utc),
                    source=f"{record.name}.{record.funcName}"[:255],
                    level=record.levelname,
                    message=self.format(record)[:MAX_MESSAGE_LENGTH],
                ))
                session.commit()
            finally:
                session.close()
        except Exception:
            self.handleError(record)
        finally:
            self._local.active = False
