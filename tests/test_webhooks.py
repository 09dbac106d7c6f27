from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from billing.webhooks import (
    CHECKOUT_COMPLETED,
    WebhookIngestor,
    WebhookOutcome,
    extract_client_reference,
    parse_event,
)
from entitlements.models import EntitlementStatus
from entitlements.promotions import PromotionResolver
from entitlements.service import EntitlementService
from ledger.store import LedgerStore


def _event(event_id="evt_1", email="b@x.com", event_type=CHECKOUT_COMPLETED) -> bytes:
    session = {"id": "cs_1", "object": "checkout.session"}
    if email is not None:
        session["client_reference_id"] = email
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": session}}).encode()


@pytest.fixture
def ingestor(ledger, cache):
    return WebhookIngestor(ledger=ledger, cache=cache)


def test_completed_checkout_is_recorded(ingestor, ledger):
    assert ingestor.ingest(_event()) == WebhookOutcome.RECORDED

    record = ledger.find_by_event_id("evt_1")
    assert record.email == "b@x.com"


def test_replayed_event_yields_one_row_and_one_invalidation(ingestor, ledger, cache):
    with patch.object(cache, "invalidate_paid_users", wraps=cache.invalidate_paid_users) as invalidate:
        outcomes = [ingestor.ingest(_event()) for _ in range(5)]

    assert outcomes[0] == WebhookOutcome.RECORDED
    assert outcomes[1:] == [WebhookOutcome.DUPLICATE] * 4
    assert [p.email for p in ledger.list_payments()] == ["b@x.com"]
    assert invalidate.call_count == 1


def test_concurrent_duplicate_deliveries_append_once(ingestor, ledger):
    body = _event(event_id="evt_concurrent")

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: ingestor.ingest(body), range(16)))

    assert outcomes.count(WebhookOutcome.RECORDED) == 1
    assert outcomes.count(WebhookOutcome.DUPLICATE) == 15
    assert len(ledger.list_payments()) == 1


def test_new_payment_is_visible_through_warm_cache(ingestor, cache):
    cache.set_paid_users(["a@x.com"])

    ingestor.ingest(_event())

    assert cache.get_paid_users() is None


@pytest.mark.parametrize("body", [b"{not json", b"[]", b"", json.dumps({"type": CHECKOUT_COMPLETED}).encode()])
def test_malformed_bodies_leave_ledger_unchanged(ingestor, ledger, body):
    assert ingestor.ingest(body) == WebhookOutcome.MALFORMED
    assert ledger.list_payments() == []


def test_other_event_types_are_ignored(ingestor, ledger):
    assert ingestor.ingest(_event(event_type="invoice.paid")) == WebhookOutcome.IGNORED
    assert ledger.list_payments() == []


def test_missing_client_reference_is_not_recorded(ingestor, ledger, cache):
    with patch.object(cache, "invalidate_paid_users") as invalidate:
        assert ingestor.ingest(_event(email=None)) == WebhookOutcome.MISSING_REFERENCE

    assert ledger.list_payments() == []
    invalidate.assert_not_called()


def test_append_failure_is_reported_not_raised(cache):
    ledger = MagicMock()
    ledger.writer_lock = MagicMock()
    ledger.has_event.return_value = False
    ledger.append_payment.side_effect = RuntimeError("disk full")
    ingestor = WebhookIngestor(ledger=ledger, cache=cache)

    assert ingestor.ingest(_event()) == WebhookOutcome.FAILED


def test_idempotency_lookup_failure_falls_back_to_unique_constraint(ledger, cache):
    ingestor = WebhookIngestor(ledger=ledger, cache=cache)
    ingestor.ingest(_event())

    with patch.object(ledger, "has_event", side_effect=RuntimeError("lookup failed")):
        assert ingestor.ingest(_event()) == WebhookOutcome.DUPLICATE

    assert len(ledger.list_payments()) == 1


def test_cache_invalidation_failure_does_not_undo_record(ledger, cache):
    ingestor = WebhookIngestor(ledger=ledger, cache=cache)
    with patch.object(cache, "invalidate_paid_users", side_effect=RuntimeError("redis down")):
        assert ingestor.ingest(_event()) == WebhookOutcome.RECORDED
    assert ledger.has_event("evt_1")


def test_parse_helpers():
    assert parse_event(b"not json") is None
    assert parse_event('{"id": "evt_1"}') == {"id": "evt_1"}
    assert extract_client_reference({"data": {"object": {"client_reference_id": "  "}}}) is None
    assert extract_client_reference({"data": "oops"}) is None


class _PausingLedger(LedgerStore):
    """Holds the first paid-email read open until the test releases it."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.read_finished = threading.Event()
        self.release = threading.Event()
        self._paused = False

    def list_paid_emails(self):
        emails = super().list_paid_emails()
        if not self._paused:
            self._paused = True
            self.read_finished.set()
            self.release.wait(timeout=5)
        return emails


def test_payment_during_slow_ledger_read_is_not_masked_by_stale_cache(session_factory, cache):
    ledger = _PausingLedger(session_factory)
    service = EntitlementService(
        ledger=ledger,
        promotions=PromotionResolver(source=lambda: [], cache=cache),
        cache=cache,
    )
    ingestor = WebhookIngestor(ledger=ledger, cache=cache)
    in_flight = []

    reader = threading.Thread(target=lambda: in_flight.append(service.resolve("b@x.com")))
    reader.start()
    assert ledger.read_finished.wait(timeout=5)

    assert ingestor.ingest(_event(event_id="evt_1", email="b@x.com")) == WebhookOutcome.RECORDED
    ledger.release.set()
    reader.join(timeout=5)

    assert in_flight[0].status == EntitlementStatus.NOT_PREMIUM
    assert cache.get_paid_users() is None
    assert service.resolve("b@x.com").status == EntitlementStatus.PAID
