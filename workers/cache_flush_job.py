"""
Cache flush job: administrative invalidation of the shared caches.

Drops the cached paid-user list, the cached active promotion, or both,
so the next request re-reads them from the ledger. Use after editing
promotion rows or correcting payments by hand.

Run:
    python -m workers.cache_flush_job promotions
    python -m workers.cache_flush_job users
    python -m workers.cache_flush_job all

Only REDIS_URL is read. Without it the job has nothing shared to flush.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from entitlements.cache import PAID_USERS_KEY, PROMOTION_KEY, EntitlementCache

logger = logging.getLogger(__name__)

TARGETS = ("promotions", "users", "all")


@dataclass
class FlushStats:
    target: str
    backend: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    flushed_keys: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "backend": self.backend,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "flushed_keys": list(self.flushed_keys),
            "errors": list(self.errors),
        }


def flush_promotion_cache(cache: EntitlementCache) -> None:
    cache.invalidate_promotion()
    logger.info("Promotion cache flushed", extra={"backend": cache.backend})


def flush_user_cache(cache: EntitlementCache) -> None:
    cache.invalidate_paid_users()
    logger.info("Paid user cache flushed", extra={"backend": cache.backend})


def run_flush(cache: EntitlementCache, target: str) -> FlushStats:
    if target not in TARGETS:
        raise ValueError(f"Unknown flush target: {target}")

    stats = FlushStats(target=target, backend=cache.backend)
    steps = []
    if target in ("promotions", "all"):
        steps.append((PROMOTION_KEY, flush_promotion_cache))
    if target in ("users", "all"):
        steps.append((PAID_USERS_KEY, flush_user_cache))

    for key, step in steps:
        try:
            step(cache)
            stats.flushed_keys.append(key)
        except Exception as exc:
            logger.error("Cache flush failed", extra={"key": key, "error": str(exc)}, exc_info=True)
            stats.errors.append(f"{key}: {exc}")

    stats.completed_at = datetime.now(timezone.utc)
    return stats


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Flush premium gate caches")
    parser.add_argument("target", choices=TARGETS)
    args = parser.parse_args(argv)

    redis_url = os.getenv("REDIS_URL") or None
    if not redis_url:
        logger.warning("REDIS_URL not set; only this process's memory cache is flushed")

    cache = EntitlementCache(redis_url=redis_url)
    stats = run_flush(cache, args.target)
    logger.info("Cache flush stats", extra=stats.to_dict())
    if stats.errors:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
