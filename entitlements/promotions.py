from __future__ import annotations

import logging
import math
from datetime import date, datetime, time
from typing import Callable, Iterable, Optional

from .cache import EntitlementCache
from .models import NO_PROMOTION, PromotionSnapshot, PromotionWindow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# Formats operators are known to type into the promotions table.
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%d.%m.%Y")


def parse_end_date(value) -> Optional[date]:
    """Parse a promotion end date; None when missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def days_left(end: date, today: date) -> int:
    """ceil((end of `end` day - start of `today`) / 1 day)."""
    end_of_day = datetime.combine(end, time.max)
    start_of_today = datetime.combine(today, time.min)
    return math.ceil((end_of_day - start_of_today).total_seconds() / SECONDS_PER_DAY)


def _normalize_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip().upper()
    return normalized or None


def evaluate_promotions(rows: Iterable[PromotionWindow], today: date) -> PromotionSnapshot:
    """Return the first row (in stored order) whose end date is today or later."""
    for row in rows:
        end = parse_end_date(row.active_until)
        if end is None:
            continue
        if end < today:
            continue
        return PromotionSnapshot(
            has_promo=True,
            promo_type=_normalize_type(row.promo_type),
            promo_code_id=row.promo_code_id,
            message=row.message,
            button_text=row.button_text,
            sale_price_text=row.sale_price_text,
            original_price=row.original_price_text,
            days_left=days_left(end, today),
        )
    return NO_PROMOTION


class PromotionResolver:
    """Resolves the active promotion, cached for PROMOTION_TTL_SECONDS.

    The cache is never invalidated on table edits; changes become visible
    when the entry expires (or an operator flushes it).
    """

    def __init__(
        self,
        *,
        source: Callable[[], Iterable[PromotionWindow]],
        cache: EntitlementCache,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._source = source
        self.cache = cache
        self._clock = clock or datetime.now

    def get_active(self) -> PromotionSnapshot:
        cached = self.cache.get_promotion()
        if cached is not None:
            logger.debug("Returning promotion data from cache")
            return cached

        logger.info("Promotion cache miss, reading promotions table")
        try:
            rows = list(self._source())
            snapshot = evaluate_promotions(rows, self._clock().date())
        except Exception as exc:
            # safe default; not cached so the next call retries the table
            logger.error("Failed to resolve active promotion", extra={"error": str(exc)})
            return NO_PROMOTION

        self.cache.set_promotion(snapshot)
        if snapshot.has_promo:
            logger.info("Active promotion found", extra={
                "promo_type": snapshot.promo_type,
                "promo_code_id": snapshot.promo_code_id,
                "days_left": snapshot.days_left,
            })
        return snapshot

    def flush(self) -> None:
        self.cache.invalidate_promotion()
