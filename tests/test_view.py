from unittest.mock import MagicMock

from entitlements.models import EntitlementDecision, EntitlementStatus, PromotionSnapshot
from extension_client.identity import NotSignedInError
from extension_client.status import PAYMENT_STATE_KEY, PaymentState
from extension_client.storage import MemoryStorage
from extension_client.view import ViewState, resolve_view, view_for_decision

DISCOUNT = PromotionSnapshot(
    has_promo=True,
    promo_type="DISCOUNT",
    promo_code_id="P1",
    message="Spring sale",
    button_text="Get 50% off",
    sale_price_text="$4.99",
    original_price="$9.99",
    days_left=3,
)
FREE = PromotionSnapshot(has_promo=True, promo_type="FREE", message="Free this week", days_left=5)


def test_paid_is_entitled():
    view = view_for_decision(EntitlementDecision(EntitlementStatus.PAID))
    assert view.state == ViewState.ENTITLED
    assert view.premium_features_enabled


def test_free_promo_is_entitled_with_message():
    view = view_for_decision(EntitlementDecision(EntitlementStatus.FREE_PROMO, FREE))
    assert view.state == ViewState.ENTITLED
    assert view.message == "Free this week"
    assert view.days_left == 5


def test_discount_is_promo_offer():
    view = view_for_decision(EntitlementDecision(EntitlementStatus.NOT_PREMIUM, DISCOUNT))
    assert view.state == ViewState.PROMO_OFFER
    assert not view.premium_features_enabled
    assert view.original_price == "$9.99"
    assert view.promo_code_id == "P1"


def test_no_promo_is_standard_offer():
    view = view_for_decision(EntitlementDecision(EntitlementStatus.NOT_PREMIUM))
    assert view.state == ViewState.STANDARD_OFFER


def test_pending_payment_suppresses_promo_content():
    discount = view_for_decision(EntitlementDecision(EntitlementStatus.NOT_PREMIUM, DISCOUNT), PaymentState.PENDING)
    free = view_for_decision(EntitlementDecision(EntitlementStatus.FREE_PROMO, FREE), PaymentState.PENDING)

    assert discount.state == ViewState.STANDARD_OFFER
    assert free.state == ViewState.ENTITLED
    assert free.message is None


def test_resolve_view_maps_not_signed_in():
    client = MagicMock()
    client.get_status.side_effect = NotSignedInError("no token")
    assert resolve_view(client).state == ViewState.SIGNED_OUT


def test_resolve_view_maps_unexpected_failure_to_retry():
    client = MagicMock()
    client.get_status.side_effect = RuntimeError("boom")
    assert resolve_view(client).state == ViewState.ERROR_WITH_RETRY


def test_resolve_view_reads_payment_state_after_status():
    client = MagicMock()
    client.storage = MemoryStorage({PAYMENT_STATE_KEY: "pending"})
    client.get_status.return_value = EntitlementDecision(EntitlementStatus.NOT_PREMIUM, DISCOUNT)
    assert resolve_view(client).state == ViewState.STANDARD_OFFER


def test_resolve_view_renders_authenticating_before_status_check():
    rendered = []
    client = MagicMock()
    client.storage = MemoryStorage()

    def get_status():
        assert [view.state for view in rendered] == [ViewState.AUTHENTICATING]
        return EntitlementDecision(EntitlementStatus.PAID)

    client.get_status.side_effect = get_status

    final = resolve_view(client, render=rendered.append)

    assert [view.state for view in rendered] == [ViewState.AUTHENTICATING, ViewState.ENTITLED]
    assert rendered[0].button_text == "Authenticating..."
    assert rendered[-1] is final


def test_resolve_view_renders_signed_out_after_authenticating():
    rendered = []
    client = MagicMock()
    client.get_status.side_effect = NotSignedInError("no token")

    resolve_view(client, render=rendered.append)

    assert [view.state for view in rendered] == [ViewState.AUTHENTICATING, ViewState.SIGNED_OUT]
