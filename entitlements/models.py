from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union


class EntitlementStatus(str, Enum):
    PAID = "paid"
    FREE_PROMO = "free_promo"
    NOT_PREMIUM = "not_premium"


class PromotionType(str, Enum):
    FREE = "FREE"
    DISCOUNT = "DISCOUNT"


@dataclass(frozen=True)
class PaymentRecord:
    """A completed payment as stored in the ledger."""

    email: str
    purchased_at: datetime
    event_id: str


@dataclass(frozen=True)
class PromotionWindow:
    """A promotion row as stored. active_until may be raw operator text."""

    active_until: Union[str, date, datetime, None]
    promo_type: Optional[str] = None
    promo_code_id: Optional[str] = None
    message: Optional[str] = None
    button_text: Optional[str] = None
    sale_price_text: Optional[str] = None
    original_price_text: Optional[str] = None


@dataclass(frozen=True)
class PromotionSnapshot:
    """The resolved promotion handed to clients (camelCase on the wire)."""

    has_promo: bool
    promo_type: Optional[str] = None
    promo_code_id: Optional[str] = None
    message: Optional[str] = None
    button_text: Optional[str] = None
    sale_price_text: Optional[str] = None
    original_price: Optional[str] = None
    days_left: Optional[int] = None

    @property
    def is_free(self) -> bool:
        return self.has_promo and self.promo_type == PromotionType.FREE.value

    @property
    def is_discount(self) -> bool:
        return self.has_promo and self.promo_type == PromotionType.DISCOUNT.value

    def to_dict(self) -> Dict[str, Any]:
        if not self.has_promo:
            return {"hasPromo": False}
        return {
            "hasPromo": True,
            "type": self.promo_type,
            "promoCodeId": self.promo_code_id,
            "message": self.message,
            "buttonText": self.button_text,
            "salePriceText": self.sale_price_text,
            "originalPrice": self.original_price,
            "daysLeft": self.days_left,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PromotionSnapshot":
        if not raw or not raw.get("hasPromo"):
            return NO_PROMOTION
        days_left = raw.get("daysLeft")
        return cls(
            has_promo=True,
            promo_type=raw.get("type"),
            promo_code_id=raw.get("promoCodeId"),
            message=raw.get("message"),
            button_text=raw.get("buttonText"),
            sale_price_text=raw.get("salePriceText"),
            original_price=raw.get("originalPrice"),
            days_left=None if days_left is None else int(days_left),
        )


NO_PROMOTION = PromotionSnapshot(has_promo=False)


@dataclass(frozen=True)
class EntitlementDecision:
    """Status for one user at one instant."""

    status: EntitlementStatus
    promo_data: Optional[PromotionSnapshot] = None

    @property
    def is_premium(self) -> bool:
        return self.status in (EntitlementStatus.PAID, EntitlementStatus.FREE_PROMO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "promoData": self.promo_data.to_dict() if self.promo_data is not None else None,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "EntitlementDecision":
        status = EntitlementStatus(raw.get("status"))
        promo_raw = raw.get("promoData")
        promo = PromotionSnapshot.from_dict(promo_raw) if promo_raw else None
        return cls(status=status, promo_data=promo)


def resolve_decision(
    *,
    email: str,
    paid_emails: Iterable[str],
    promotion: PromotionSnapshot,
) -> EntitlementDecision:
    """Resolve in fixed order: ledger -> free promotion -> discount -> none."""
    normalized_email = str(email).strip()
    if not normalized_email:
        raise ValueError("email is required")

    if normalized_email in set(paid_emails):
        return EntitlementDecision(status=EntitlementStatus.PAID, promo_data=None)

    if promotion.has_promo:
        if promotion.is_free:
            return EntitlementDecision(status=EntitlementStatus.FREE_PROMO, promo_data=promotion)
        # any other active promotion is presented as an offer
        return EntitlementDecision(status=EntitlementStatus.NOT_PREMIUM, promo_data=promotion)

    return EntitlementDecision(status=EntitlementStatus.NOT_PREMIUM, promo_data=None)
