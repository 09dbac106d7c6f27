"""
Database models for the payment ledger.

- payments: append-only record of completed checkouts. event_id is UNIQUE,
  which is the idempotency guarantee for webhook deliveries.
- promotions: ordered promotion windows edited by operators.
- diagnostic_logs: append-only operational log mirrored from `logging`.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """A completed one-time payment. Never updated or deleted."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(
        String(320),
        nullable=False,
        index=True,
        comment="Verified purchaser email (client_reference_id)"
    )

    purchased_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        comment="When the webhook recorded the payment"
    )

    event_id = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Payment processor event id, unique per delivery"
    )

    def __repr__(self) -> str:
        return f"<Payment(email={self.email}, event_id={self.event_id})>"


class Promotion(Base):
    """
    A promotion window.

    active_until is kept as free text so operators can type dates the way
    they would in a spreadsheet; unparseable values are skipped at read time.
    """

    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    position = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Evaluation order, ascending; first active row wins"
    )

    active_until = Column(String(64), nullable=True)
    promo_type = Column("type", String(32), nullable=True)
    promo_code_id = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    button_text = Column(String(255), nullable=True)
    sale_price_text = Column(String(255), nullable=True)
    original_price_text = Column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_promotions_position", "position", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Promotion(id={self.id}, position={self.position}, "
            f"type={self.promo_type}, active_until={self.active_until})>"
        )


class DiagnosticLog(Base):
    """Operational log row. Not used for any entitlement decision."""

    __tablename__ = "diagnostic_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    source = Column(String(255), nullable=False)
    level = Column(String(16), nullable=False, default="INFO")
    message = Column(Text, nullable=False)
