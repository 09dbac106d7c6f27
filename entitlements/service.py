from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from .cache import EntitlementCache
from .models import EntitlementDecision, EntitlementStatus, resolve_decision
from .promotions import PromotionResolver

logger = logging.getLogger(__name__)

FAIL_CLOSED_ERROR_CODE = "ENTITLEMENTS_UNAVAILABLE_FAIL_CLOSED"


class PaidUserSource(Protocol):
    def list_paid_emails(self) -> List[str]: ...


class EntitlementEvaluationError(RuntimeError):
    def __init__(self, email: str, message: str, error_code: str = FAIL_CLOSED_ERROR_CODE):
        super().__init__(message)
        self.email = email
        self.error_code = error_code


class EntitlementService:
    """Resolves premium status: ledger (via cache) first, then promotions."""

    def __init__(
        self,
        *,
        ledger: PaidUserSource,
        promotions: PromotionResolver,
        cache: Optional[EntitlementCache] = None,
        audit_sink: Optional[Callable[[str, dict], None]] = None,
    ) -> None:
        self.ledger = ledger
        self.promotions = promotions
        self.cache = cache or promotions.cache
        self._audit_sink = audit_sink or (lambda event, payload: None)

    def resolve(self, email: str) -> EntitlementDecision:
        if not str(email).strip():
            raise ValueError("email is required")

        paid_emails = self.get_paid_users(email=email)
        if str(email).strip() in paid_emails:
            return EntitlementDecision(status=EntitlementStatus.PAID, promo_data=None)

        decision = resolve_decision(
            email=email,
            paid_emails=paid_emails,
            promotion=self.promotions.get_active(),
        )
        if decision.status == EntitlementStatus.FREE_PROMO:
            logger.info("Granting temporary free access", extra={"email": email})
        elif decision.promo_data is not None:
            logger.info("User is not premium, discount available", extra={"email": email})
        return decision

    def get_paid_users(self, *, email: str = "") -> List[str]:
        """Fast path from cache; on miss read the full ledger and populate."""
        cached = self.cache.get_paid_users()
        if cached is not None:
            logger.debug("Returning paid users list from cache")
            return cached

        logger.info("Paid users cache miss, reading ledger")
        # read before the ledger so a payment landing mid-read blocks the write-back
        generation = self.cache.paid_users_generation()
        try:
            emails = list(self.ledger.list_paid_emails())
        except Exception as exc:
            payload = {
                "email": email,
                "error": str(exc),
                "error_code": FAIL_CLOSED_ERROR_CODE,
                "occurred_at": datetime.now(timezone.utc).isoformat(),
            }
            self._audit_sink("entitlements.evaluation_failed", payload)
            raise EntitlementEvaluationError(
                email=email,
                message="Entitlements unavailable. Access denied.",
            ) from exc

        if not self.cache.set_paid_users(emails, expected_generation=generation):
            logger.info("Paid users changed during ledger read, not caching")
        return emails

    def invalidate_paid_users(self) -> None:
        self.cache.invalidate_paid_users()
