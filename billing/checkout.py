"""
Payment session initiation.

Creates a one-time Stripe Checkout session for a verified email. The email
doubles as client_reference_id so the completion webhook can attribute the
payment. An active DISCOUNT promotion attaches its promotion code.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from entitlements.promotions import PromotionResolver
from billing.stripe_client import StripeAPIError, StripeClient, stripe_error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    checkout_url: str
    session_id: Optional[str] = None
    promo_code_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"checkoutUrl": self.checkout_url}


class CheckoutSessionError(Exception):
    """Checkout session could not be created."""

    def __init__(self, message: str, email: Optional[str] = None):
        super().__init__(message)
        self.email = email


class PaymentSessionInitiator:
    def __init__(
        self,
        *,
        stripe: StripeClient,
        promotions: PromotionResolver,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ):
        if not price_id:
            raise ValueError("price_id is required")
        self.stripe = stripe
        self.promotions = promotions
        self.price_id = price_id
        self.success_url = success_url
        self.cancel_url = cancel_url

    def build_checkout_form(self, email: str) -> Dict[str, str]:
        form = {
            "line_items[0][price]": self.price_id,
            "line_items[0][quantity]": "1",
            "customer_email": email,
            "mode": "payment",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "client_reference_id": email,
        }

        promotion = self.promotions.get_active()
        if promotion.is_discount and promotion.promo_code_id:
            logger.info("Applying promotion code", extra={"promo_code_id": promotion.promo_code_id})
            form["discounts[0][promotion_code]"] = promotion.promo_code_id

        return form

    def create_checkout_session(self, email: str) -> CheckoutSession:
        normalized_email = str(email).strip()
        if not normalized_email:
            raise ValueError("email is required")

        form = self.build_checkout_form(normalized_email)

        try:
            session = self.stripe.create_checkout_session(form)
        except StripeAPIError as e:
            raise CheckoutSessionError(
                f"Failed to create Stripe session: {e}", email=normalized_email
            ) from e

        if not session.url:
            raise CheckoutSessionError(
                "Failed to create Stripe session: " + stripe_error_message(session.raw),
                email=normalized_email,
            )

        logger.info("Checkout session created", extra={
            "email": normalized_email,
            "session_id": session.session_id,
        })
        return CheckoutSession(
            checkout_url=session.url,
            session_id=session.session_id,
            promo_code_id=form.get("discounts[0][promotion_code]"),
        )
