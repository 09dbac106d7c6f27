from __future__ import annotations

from datetime import date, datetime, timedelta

import httpx
import pytest

from billing.checkout import CheckoutSessionError, PaymentSessionInitiator
from billing.stripe_client import (
    StripeAPIError,
    StripeClient,
    stripe_error_message,
    verify_webhook_secret,
)
from entitlements.models import PromotionWindow
from entitlements.promotions import PromotionResolver

from conftest import StripeRecorder

TODAY = date(2026, 3, 10)


def _initiator(cache, recorder, rows=()):
    stripe = StripeClient("sk_test_123", transport=httpx.MockTransport(recorder))
    promotions = PromotionResolver(
        source=lambda: list(rows),
        cache=cache,
        clock=lambda: datetime(2026, 3, 10, 12, 0),
    )
    return PaymentSessionInitiator(
        stripe=stripe,
        promotions=promotions,
        price_id="price_123",
        success_url="https://example.com/success",
        cancel_url="https://example.com/cancel",
    )


def test_checkout_form_carries_email_as_reference(cache):
    recorder = StripeRecorder()

    session = _initiator(cache, recorder).create_checkout_session("a@x.com")

    assert session.to_dict() == {"checkoutUrl": "https://checkout.stripe.com/c/pay/cs_test_1"}
    request = recorder.requests[0]
    assert request["url"] == "https://api.stripe.com/v1/checkout/sessions"
    assert request["headers"]["authorization"] == "Bearer sk_test_123"
    assert request["form"] == {
        "line_items[0][price]": "price_123",
        "line_items[0][quantity]": "1",
        "customer_email": "a@x.com",
        "mode": "payment",
        "success_url": "https://example.com/success",
        "cancel_url": "https://example.com/cancel",
        "client_reference_id": "a@x.com",
    }


def test_active_discount_attaches_promotion_code(cache):
    recorder = StripeRecorder()
    rows = [PromotionWindow(active_until=TODAY + timedelta(days=2), promo_type="DISCOUNT", promo_code_id="promo_P1")]

    session = _initiator(cache, recorder, rows).create_checkout_session("a@x.com")

    assert recorder.last_form["discounts[0][promotion_code]"] == "promo_P1"
    assert session.promo_code_id == "promo_P1"


def test_free_promotion_does_not_attach_code(cache):
    recorder = StripeRecorder()
    rows = [PromotionWindow(active_until=TODAY, promo_type="FREE", promo_code_id="promo_FREE")]

    _initiator(cache, recorder, rows).create_checkout_session("a@x.com")

    assert "discounts[0][promotion_code]" not in recorder.last_form


def test_stripe_error_body_raises_checkout_error(cache):
    recorder = StripeRecorder()
    recorder.response_status = 400
    recorder.response_body = {"error": {"message": "No such price: 'price_123'"}}

    with pytest.raises(CheckoutSessionError) as exc_info:
        _initiator(cache, recorder).create_checkout_session("a@x.com")

    assert "No such price" in str(exc_info.value)
    assert exc_info.value.email == "a@x.com"


def test_transport_failure_raises_checkout_error(cache):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    stripe = StripeClient("sk_test_123", transport=httpx.MockTransport(handler))
    with pytest.raises(StripeAPIError):
        stripe.create_checkout_session({"mode": "payment"})

    promotions = PromotionResolver(source=lambda: [], cache=cache)
    initiator = PaymentSessionInitiator(
        stripe=stripe,
        promotions=promotions,
        price_id="price_123",
        success_url="https://example.com/success",
        cancel_url="https://example.com/cancel",
    )
    with pytest.raises(CheckoutSessionError):
        initiator.create_checkout_session("a@x.com")


def test_non_json_response_is_an_api_error():
    stripe = StripeClient(
        "sk_test_123",
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="<html>bad gateway</html>")),
    )
    with pytest.raises(StripeAPIError) as exc_info:
        stripe.create_checkout_session({})
    assert exc_info.value.code == "502"


def test_stripe_error_message_defaults():
    assert stripe_error_message({}) == "Unknown error"
    assert stripe_error_message({"error": {"message": "boom"}}) == "boom"


def test_verify_webhook_secret():
    assert verify_webhook_secret("s3cret", "s3cret")
    assert not verify_webhook_secret("wrong", "s3cret")
    assert not verify_webhook_secret(None, "s3cret")
    assert not verify_webhook_secret("s3cret", "")
