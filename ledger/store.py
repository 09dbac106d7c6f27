"""
Ledger store: read/write surface over the payments and promotions tables.

Writes are append-only. Webhook ingestion must hold `writer_lock` across the
idempotency lookup and the append so two deliveries of the same event cannot
both pass the check; the UNIQUE(event_id) constraint covers writers in other
processes.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from entitlements.models import PaymentRecord, PromotionWindow
from ledger.models import Payment, Promotion

logger = logging.getLogger(__name__)

_WRITER_LOCK = threading.RLock()


class DuplicatePaymentEventError(Exception):
    """Raised when an append collides with an existing event_id."""

    def __init__(self, event_id: str):
        super().__init__(f"payment event already recorded: {event_id}")
        self.event_id = event_id


class LedgerStore:
    """Append-only payment ledger backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @property
    def writer_lock(self) -> threading.RLock:
        return _WRITER_LOCK

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def append_payment(
        self,
        *,
        email: str,
        event_id: str,
        purchased_at: Optional[datetime] = None,
    ) -> PaymentRecord:
        normalized_email = str(email).strip()
        normalized_event_id = str(event_id).strip()
        if not normalized_email:
            raise ValueError("email is required")
        if not normalized_event_id:
            raise ValueError("event_id is required")

        row = Payment(
            email=normalized_email,
            event_id=normalized_event_id,
            purchased_at=purchased_at or datetime.now(timezone.utc),
        )
        try:
            with self._session() as session:
                session.add(row)
                session.flush()
                record = _to_payment_record(row)
        except IntegrityError as exc:
            raise DuplicatePaymentEventError(normalized_event_id) from exc

        logger.info("Payment appended to ledger", extra={
            "email": record.email,
            "event_id": record.event_id,
        })
        return record

    def find_by_event_id(self, event_id: str) -> Optional[PaymentRecord]:
        """Exact, indexed lookup by payment event id."""
        if not str(event_id).strip():
            return None
        with self._session() as session:
            row = session.execute(
                select(Payment).where(Payment.event_id == str(event_id).strip())
            ).scalar_one_or_none()
            return _to_payment_record(row) if row is not None else None

    def has_event(self, event_id: str) -> bool:
        return self.find_by_event_id(event_id) is not None

    def list_payments(self) -> List[PaymentRecord]:
        with self._session() as session:
            rows = session.execute(select(Payment).order_by(Payment.id)).scalars().all()
            return [_to_payment_record(row) for row in rows]

    def list_paid_emails(self) -> List[str]:
        with self._session() as session:
            return list(session.execute(select(Payment.email).order_by(Payment.id)).scalars().all())

    # -------------------------------------------------------------------------
    # Promotions
    # -------------------------------------------------------------------------

    def list_promotions(self) -> List[PromotionWindow]:
        """Promotion rows in stored (evaluation) order."""
        with self._session() as session:
            rows = session.execute(
                select(Promotion).order_by(Promotion.position, Promotion.id)
            ).scalars().all()
            return [
                PromotionWindow(
                    active_until=row.active_until,
                    promo_type=row.promo_type,
                    promo_code_id=row.promo_code_id,
                    message=row.message,
                    button_text=row.button_text,
                    sale_price_text=row.sale_price_text,
                    original_price_text=row.original_price_text,
                )
                for row in rows
            ]

    def add_promotion(self, window: PromotionWindow, *, position: Optional[int] = None) -> None:
        with self._session() as session:
            if position is None:
                last = session.execute(
                    select(Promotion.position).order_by(Promotion.position.desc()).limit(1)
                ).scalar_one_or_none()
                position = 0 if last is None else last + 1
            session.add(Promotion(
                position=position,
                active_until=None if window.active_until is None else str(window.active_until),
                promo_type=window.promo_type,
                promo_code_id=window.promo_code_id,
                message=window.message,
                button_text=window.button_text,
                sale_price_text=window.sale_price_text,
                original_price_text=window.original_price_text,
            ))


def _to_payment_record(row: Payment) -> PaymentRecord:
    purchased_at = row.purchased_at
    if purchased_at is not None and purchased_at.tzinfo is None:
        # SQLite drops tzinfo on the way back out
        purchased_at = purchased_at.replace(tzinfo=timezone.utc)
    return PaymentRecord(email=row.email, purchased_at=purchased_at, event_id=row.event_id)
