"""Logging setup for the gateway process."""

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ledger.diagnostics import DiagnosticLogHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: str = "INFO",
    *,
    session_factory: Optional[sessionmaker] = None,
    diagnostic_log_enabled: bool = True,
) -> Optional[DiagnosticLogHandler]:
    """Configure root logging and, optionally, the diagnostic_logs mirror."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)

    # one mirror per process, even when the app factory runs repeatedly
    for handler in list(root.handlers):
        if isinstance(handler, DiagnosticLogHandler):
            root.removeHandler(handler)
            handler.close()

    if not diagnostic_log_enabled or session_factory is None:
        return None

    handler = DiagnosticLogHandler(session_factory, level=logging.INFO)
    root.addHandler(handler)
    return handler
