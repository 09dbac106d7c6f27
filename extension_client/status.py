"""
Client-side premium status with a tamper-scoped local cache.

A cached decision is trusted only when ALL of these hold:
- no payment is pending
- the entry belongs to the identity signed in right now
- the stored status is "paid"
- it is younger than PREMIUM_CACHE_DURATION_SECONDS
Anything else goes to the gateway. Remote failures never raise: the caller
gets the last known decision for this identity or a not_premium default.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from entitlements.models import EntitlementDecision, EntitlementStatus

from .identity import Identity, IdentityProvider, NotSignedInError
from .retry import RetryConfig, retry_with_backoff
from .storage import LocalStorage
from .transport import ACTION_VERIFY, GatewayTransport, TransportError

logger = logging.getLogger(__name__)

PREMIUM_CACHE_KEY = "premiumCache"
PAYMENT_STATE_KEY = "paymentState"
PREMIUM_CACHE_DURATION_SECONDS = 24 * 60 * 60

# Server messages meaning the token itself was refused.
AUTH_ERROR_MESSAGES = frozenset({
    "Missing authentication token",
    "Invalid or expired token",
})

DEFAULT_DECISION = EntitlementDecision(status=EntitlementStatus.NOT_PREMIUM, promo_data=None)


class PaymentState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class RemoteStatusError(Exception):
    """The gateway answered with an {"error": ...} body."""


@dataclass(frozen=True)
class ClientCacheEntry:
    email: str
    status: str
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "timestamp": self.timestamp_ms, "email": self.email}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["ClientCacheEntry"]:
        if not isinstance(raw, dict):
            return None
        try:
            return cls(
                email=str(raw["email"]),
                status=str(raw["status"]),
                timestamp_ms=int(raw["timestamp"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


def read_payment_state(storage: LocalStorage) -> Optional[PaymentState]:
    raw = storage.get(PAYMENT_STATE_KEY)
    try:
        return PaymentState(raw) if raw is not None else None
    except ValueError:
        return None


def is_cache_trusted(
    entry: Optional[ClientCacheEntry],
    *,
    email: str,
    payment_state: Optional[PaymentState],
    now_ms: int,
) -> bool:
    if payment_state == PaymentState.PENDING:
        return False
    if entry is None:
        return False
    if entry.email != email:
        return False
    if entry.status != EntitlementStatus.PAID.value:
        return False
    return now_ms - entry.timestamp_ms < PREMIUM_CACHE_DURATION_SECONDS * 1000


class PremiumStatusClient:
    def __init__(
        self,
        *,
        identity_provider: IdentityProvider,
        transport: GatewayTransport,
        storage: LocalStorage,
        retry_config: RetryConfig = RetryConfig(),
        sleep: Callable[[float], None] = time.sleep,
        clock_ms: Optional[Callable[[], int]] = None,
    ) -> None:
        self.identity_provider = identity_provider
        self.transport = transport
        self.storage = storage
        self.retry_config = retry_config
        self._sleep = sleep
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    def get_status(self) -> EntitlementDecision:
        """
        Resolve the current user's status.

        Raises:
            NotSignedInError: No silent identity, or the gateway refused the token
        """
        identity = self.identity_provider.get_identity(interactive=False)

        payment_state = read_payment_state(self.storage)
        cached = ClientCacheEntry.from_dict(self.storage.get(PREMIUM_CACHE_KEY))
        now_ms = self._clock_ms()

        if is_cache_trusted(cached, email=identity.email, payment_state=payment_state, now_ms=now_ms):
            logger.info("Using cached paid status", extra={"email": identity.email})
            return EntitlementDecision(status=EntitlementStatus.PAID, promo_data=None)

        try:
            decision = self._fetch_remote(identity)
        except NotSignedInError:
            raise
        except (TransportError, RemoteStatusError, ValueError) as exc:
            logger.warning("Status check failed, using fallback", extra={
                "email": identity.email,
                "error": str(exc),
            })
            return self._fallback(cached, identity)

        if decision.status == EntitlementStatus.PAID:
            entry = ClientCacheEntry(
                email=identity.email,
                status=EntitlementStatus.PAID.value,
                timestamp_ms=now_ms,
            )
            self.storage.set(**{PREMIUM_CACHE_KEY: entry.to_dict()})

        if payment_state == PaymentState.PENDING:
            self.storage.set(**{PAYMENT_STATE_KEY: PaymentState.COMPLETED.value})

        return decision

    def _fetch_remote(self, identity: Identity) -> EntitlementDecision:
        data = retry_with_backoff(
            lambda: self.transport.post_action(ACTION_VERIFY, identity.token),
            self.retry_config,
            retry_on=(TransportError,),
            sleep=self._sleep,
        )
        if "error" in data:
            message = str(data.get("error"))
            if message in AUTH_ERROR_MESSAGES:
                raise NotSignedInError(message)
            raise RemoteStatusError(message)
        return EntitlementDecision.from_dict(data)

    @staticmethod
    def _fallback(cached: Optional[ClientCacheEntry], identity: Identity) -> EntitlementDecision:
        # a decision cached for another account is never reused
        if cached is not None and cached.email == identity.email:
            try:
                return EntitlementDecision(status=EntitlementStatus(cached.status), promo_data=None)
            except ValueError:
                pass
        return DEFAULT_DECISION
