"""
Mapping from a status decision to the screen the extension shows.

Whatever happens the UI lands in one of the ViewState values; there is no
blank state. While a payment is pending, promotional content is suppressed
until the next successful status check resolves it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from entitlements.models import EntitlementDecision, EntitlementStatus

from .identity import NotSignedInError
from .status import PaymentState, PremiumStatusClient, read_payment_state

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    AUTHENTICATING = "authenticating"
    SIGNED_OUT = "signed_out"
    ENTITLED = "entitled"
    PROMO_OFFER = "promo_offer"
    STANDARD_OFFER = "standard_offer"
    ERROR_WITH_RETRY = "error_with_retry"


@dataclass(frozen=True)
class ExtensionView:
    state: ViewState
    premium_features_enabled: bool = False
    message: Optional[str] = None
    days_left: Optional[int] = None
    button_text: Optional[str] = None
    sale_price_text: Optional[str] = None
    original_price: Optional[str] = None
    promo_code_id: Optional[str] = None


AUTHENTICATING_VIEW = ExtensionView(state=ViewState.AUTHENTICATING, button_text="Authenticating...")
SIGNED_OUT_VIEW = ExtensionView(
    state=ViewState.SIGNED_OUT,
    message="To use the app's features, please sign in.",
    button_text="Sign in with Google",
)
STANDARD_OFFER_VIEW = ExtensionView(
    state=ViewState.STANDARD_OFFER,
    button_text="Enable Premium Features",
)


def view_for_decision(
    decision: EntitlementDecision,
    payment_state: Optional[PaymentState] = None,
) -> ExtensionView:
    pending = payment_state == PaymentState.PENDING
    promo = decision.promo_data

    if decision.status == EntitlementStatus.PAID:
        return ExtensionView(state=ViewState.ENTITLED, premium_features_enabled=True)

    if decision.status == EntitlementStatus.FREE_PROMO:
        if pending or promo is None:
            return ExtensionView(state=ViewState.ENTITLED, premium_features_enabled=True)
        return ExtensionView(
            state=ViewState.ENTITLED,
            premium_features_enabled=True,
            message=promo.message,
            days_left=promo.days_left,
        )

    if promo is not None and promo.is_discount and not pending:
        return ExtensionView(
            state=ViewState.PROMO_OFFER,
            message=promo.message,
            days_left=promo.days_left,
            button_text=promo.button_text,
            sale_price_text=promo.sale_price_text,
            original_price=promo.original_price,
            promo_code_id=promo.promo_code_id,
        )
    return STANDARD_OFFER_VIEW


def error_view(message: str) -> ExtensionView:
    return ExtensionView(state=ViewState.ERROR_WITH_RETRY, message=message, button_text="Try again")


def resolve_view(
    client: PremiumStatusClient,
    render: Optional[Callable[[ExtensionView], None]] = None,
) -> ExtensionView:
    """
    Run a status check and return the screen to render.

    When `render` is given it receives the authenticating view before the
    check starts and the final view once it is known.
    """
    if render is not None:
        render(AUTHENTICATING_VIEW)

    try:
        decision = client.get_status()
    except NotSignedInError as e:
        logger.info("Silent authentication failed", extra={"error": str(e)})
        view = SIGNED_OUT_VIEW
    except Exception as e:
        logger.error("Status resolution failed", extra={"error": str(e)})
        view = error_view("Could not check your premium status.")
    else:
        view = view_for_decision(decision, read_payment_state(client.storage))

    if render is not None:
        render(view)
    return view
