"""
Payment-completion webhook ingestion.

The processor redelivers at-least-once and expects a prompt 200. Every path
through ingest() therefore returns an outcome instead of raising; the HTTP
layer acknowledges regardless of the outcome and failures are only logged.

Order of operations per delivery:
    parse -> idempotency check -> apply (checkout.session.completed only)
    -> invalidate paid-user cache
The idempotency check and the append run under the ledger writer lock.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

from entitlements.cache import EntitlementCache
from ledger.store import DuplicatePaymentEventError, LedgerStore

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class WebhookOutcome(str, Enum):
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    MISSING_REFERENCE = "missing_reference"
    MALFORMED = "malformed"
    FAILED = "failed"


def parse_event(raw_body: Union[bytes, str]) -> Optional[Dict[str, Any]]:
    """Decode a webhook body; None when it is not a JSON object."""
    try:
        event = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(event, dict):
        return None
    return event


def extract_client_reference(event: Dict[str, Any]) -> Optional[str]:
    data = event.get("data")
    if not isinstance(data, dict):
        return None
    session = data.get("object")
    if not isinstance(session, dict):
        return None
    reference = session.get("client_reference_id")
    if reference is None or not str(reference).strip():
        return None
    return str(reference).strip()


class WebhookIngestor:
    def __init__(self, *, ledger: LedgerStore, cache: EntitlementCache):
        self.ledger = ledger
        self.cache = cache

    def ingest(self, raw_body: Union[bytes, str]) -> WebhookOutcome:
        event = parse_event(raw_body)
        if event is None:
            logger.error("Could not parse incoming webhook JSON")
            return WebhookOutcome.MALFORMED

        event_id = str(event.get("id") or "").strip()
        if not event_id:
            logger.error("Webhook event has no id", extra={"event_type": event.get("type")})
            return WebhookOutcome.MALFORMED

        try:
            with self.ledger.writer_lock:
                if self._is_event_processed(event_id):
                    logger.info("Webhook already processed, skipping", extra={"event_id": event_id})
                    return WebhookOutcome.DUPLICATE
                outcome = self._apply(event, event_id)
        except DuplicatePaymentEventError:
            # another process appended the same event between check and insert
            logger.info("Webhook recorded concurrently, skipping", extra={"event_id": event_id})
            return WebhookOutcome.DUPLICATE
        except Exception as e:
            logger.error("Failed to process webhook", extra={
                "event_id": event_id,
                "error": str(e),
            }, exc_info=True)
            return WebhookOutcome.FAILED

        if outcome == WebhookOutcome.RECORDED:
            self._invalidate_paid_users(event_id)
        return outcome

    def _is_event_processed(self, event_id: str) -> bool:
        try:
            return self.ledger.has_event(event_id)
        except Exception as e:
            # UNIQUE(event_id) still prevents a second row if this was wrong
            logger.error("Idempotency lookup failed", extra={
                "event_id": event_id,
                "error": str(e),
            })
            return False

    def _apply(self, event: Dict[str, Any], event_id: str) -> WebhookOutcome:
        event_type = event.get("type")
        if event_type != CHECKOUT_COMPLETED:
            logger.info("Ignoring webhook event type", extra={
                "event_id": event_id,
                "event_type": event_type,
            })
            return WebhookOutcome.IGNORED

        email = extract_client_reference(event)
        if not email:
            logger.error("Missing client_reference_id in completed session", extra={"event_id": event_id})
            return WebhookOutcome.MISSING_REFERENCE

        self.ledger.append_payment(email=email, event_id=event_id)
        logger.info("Recorded payment", extra={"email": email, "event_id": event_id})
        return WebhookOutcome.RECORDED

    def _invalidate_paid_users(self, event_id: str) -> None:
        try:
            self.cache.invalidate_paid_users()
        except Exception as e:
            logger.error("Failed to invalidate paid users cache", extra={
                "event_id": event_id,
                "error": str(e),
            })
