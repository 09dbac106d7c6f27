"""
Entitlement resolution for premium access.

This package provides:
- EntitlementService: ledger-first status resolution
- PromotionResolver: first active promotion window, cached for 10 minutes
- EntitlementCache: Redis-backed cache with in-memory fallback and explicit
  invalidation of the paid-user set

It has no database dependency; the ledger is injected.
"""

from entitlements.cache import (
    PAID_USERS_KEY,
    PROMOTION_KEY,
    EntitlementCache,
)
from entitlements.models import (
    NO_PROMOTION,
    EntitlementDecision,
    EntitlementStatus,
    PaymentRecord,
    PromotionSnapshot,
    PromotionType,
    PromotionWindow,
)
from entitlements.promotions import PromotionResolver
from entitlements.service import EntitlementEvaluationError, EntitlementService

__all__ = [
    "PAID_USERS_KEY",
    "PROMOTION_KEY",
    "EntitlementCache",
    "NO_PROMOTION",
    "EntitlementDecision",
    "EntitlementStatus",
    "PaymentRecord",
    "PromotionSnapshot",
    "PromotionType",
    "PromotionWindow",
    "PromotionResolver",
    "EntitlementEvaluationError",
    "EntitlementService",
]
