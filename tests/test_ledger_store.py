from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect

from entitlements.models import PromotionWindow
from ledger.db import build_engine, create_schema, normalize_database_url
from ledger.readiness import LedgerUnavailableError, check_required_tables, require_ledger
from ledger.store import DuplicatePaymentEventError


def test_append_and_find_by_event_id(ledger):
    purchased_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    ledger.append_payment(email=" a@x.com ", event_id="evt_1", purchased_at=purchased_at)

    record = ledger.find_by_event_id("evt_1")

    assert record.email == "a@x.com"
    assert record.purchased_at == purchased_at
    assert ledger.has_event("evt_1")
    assert not ledger.has_event("evt_2")
    assert ledger.find_by_event_id("") is None


def test_duplicate_event_id_is_rejected(ledger):
    ledger.append_payment(email="a@x.com", event_id="evt_1")

    with pytest.raises(DuplicatePaymentEventError) as exc_info:
        ledger.append_payment(email="b@x.com", event_id="evt_1")

    assert exc_info.value.event_id == "evt_1"
    assert [p.email for p in ledger.list_payments()] == ["a@x.com"]


def test_same_email_may_pay_twice(ledger):
    ledger.append_payment(email="a@x.com", event_id="evt_1")
    ledger.append_payment(email="a@x.com", event_id="evt_2")

    assert ledger.list_paid_emails() == ["a@x.com", "a@x.com"]


@pytest.mark.parametrize("email, event_id", [("", "evt_1"), ("a@x.com", " ")])
def test_blank_fields_are_rejected(ledger, email, event_id):
    with pytest.raises(ValueError):
        ledger.append_payment(email=email, event_id=event_id)


def test_promotions_listed_in_position_order(ledger):
    ledger.add_promotion(PromotionWindow(active_until="2026-04-01", promo_type="FREE", message="b"), position=2)
    ledger.add_promotion(PromotionWindow(active_until="2026-04-01", promo_type="FREE", message="a"), position=1)
    ledger.add_promotion(PromotionWindow(active_until="2026-04-01", promo_type="DISCOUNT", message="c"))

    assert [row.message for row in ledger.list_promotions()] == ["a", "b", "c"]


def test_normalize_database_url_rewrites_postgres_scheme():
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    with pytest.raises(ValueError):
        normalize_database_url("")


class TestReadiness:
    def test_ready_when_all_tables_exist(self, engine):
        result = check_required_tables(engine)
        assert result.ready
        assert result.missing_optional_tables == []

    def test_missing_promotions_table_is_not_fatal(self):
        engine = build_engine("sqlite://")
        create_schema(engine, tables=["payments", "diagnostic_logs"])

        result = require_ledger(engine)

        assert result.ready
        assert result.missing_optional_tables == ["promotions"]
        engine.dispose()

    def test_missing_payments_table_is_fatal(self):
        engine = build_engine("sqlite://")
        create_schema(engine, tables=["diagnostic_logs"])

        with pytest.raises(LedgerUnavailableError) as exc_info:
            require_ledger(engine)

        assert exc_info.value.missing_tables == ["payments"]
        assert not inspect(engine).has_table("payments")
        engine.dispose()
