"""Create the ledger tables and report readiness.

Safe to run repeatedly: existing tables are left as they are.

    DATABASE_URL=postgresql://... python -m scripts.init_ledger
"""

from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from api.config import DEFAULT_DATABASE_URL
from ledger.db import build_engine, create_schema, normalize_database_url
from ledger.readiness import check_required_tables

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    return normalize_database_url(os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL)


def init_ledger(database_url: str, *, skip_promotions: bool = False):
    engine = build_engine(database_url)
    try:
        tables = ["payments", "diagnostic_logs"]
        if not skip_promotions:
            tables.append("promotions")
        create_schema(engine, tables=tables)
        return check_required_tables(engine)
    finally:
        engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    argv = list(sys.argv[1:] if argv is None else argv)
    skip_promotions = "--skip-promotions" in argv

    try:
        result = init_ledger(get_database_url(), skip_promotions=skip_promotions)
    except SQLAlchemyError as exc:
        logger.error("Ledger initialization failed: %s", exc)
        return 1

    if not result.ready:
        logger.error("Ledger not ready, missing tables: %s", ", ".join(result.missing_tables))
        return 1
    if result.missing_optional_tables:
        logger.info("Optional tables absent: %s", ", ".join(result.missing_optional_tables))
    logger.info("Ledger ready: %s", ", ".join(result.checked_tables))
    return 0


if __name__ == "__main__":
    sys.exit(main())
