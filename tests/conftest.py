"""
Shared pytest fixtures.

The ledger runs on in-memory SQLite (single shared connection), the cache on
its in-memory backend, and both outbound HTTP dependencies (Google tokeninfo,
Stripe) on httpx.MockTransport handlers.
"""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from api.config import Settings
from api.services import build_services
from entitlements.cache import EntitlementCache
from ledger.db import build_engine, build_session_factory, create_schema
from ledger.store import LedgerStore

BUYER_EMAIL = "buyer@example.com"
OTHER_EMAIL = "other@example.com"
VALID_TOKENS = {
    "good-token": BUYER_EMAIL,
    "other-token": OTHER_EMAIL,
}
WEBHOOK_SECRET = "whsec-test"


class _FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)

    def incr(self, key):
        value = int(self.store.get(key) or 0) + 1
        self.store[key] = str(value)
        return value

    def pipeline(self):
        return _FakePipeline(self)


class _FakePipeline:
    """WATCH/MULTI/EXEC subset; `before_execute` lets a test race the EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.watched = {}
        self.queued = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.watched = {}
        self.queued = []

    def watch(self, *keys):
        for key in keys:
            self.watched[key] = self.redis.store.get(key)

    def unwatch(self):
        self.watched = {}

    def get(self, key):
        return self.redis.get(key)

    def multi(self):
        pass

    def setex(self, key, ttl, value):
        self.queued.append((key, ttl, value))

    def execute(self):
        from redis.exceptions import WatchError

        hook = getattr(self.redis, "before_execute", None)
        if hook is not None:
            hook()
        if any(self.redis.store.get(key) != value for key, value in self.watched.items()):
            raise WatchError("watched key changed")
        for key, ttl, value in self.queued:
            self.redis.setex(key, ttl, value)
        self.queued = []


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StripeRecorder:
    """MockTransport handler standing in for the Checkout Sessions endpoint."""

    def __init__(self):
        self.requests = []
        self.response_status = 200
        self.response_body = {
            "id": "cs_test_1",
            "url": "https://checkout.stripe.com/c/pay/cs_test_1",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        self.requests.append({"url": str(request.url), "form": form, "headers": request.headers})
        return httpx.Response(self.response_status, json=self.response_body)

    @property
    def last_form(self) -> dict:
        return self.requests[-1]["form"]


def tokeninfo_handler(request: httpx.Request) -> httpx.Response:
    email = VALID_TOKENS.get(request.url.params.get("access_token"))
    if email is None:
        return httpx.Response(400, json={"error_description": "Invalid Value"})
    return httpx.Response(200, content=json.dumps({
        "email": email,
        "email_verified": "true",
        "expires_in": "3599",
    }))


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def ledger(session_factory):
    return LedgerStore(session_factory)


@pytest.fixture
def fake_redis():
    return _FakeRedis()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return EntitlementCache(redis_url="", clock=clock)


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_123",
        webhook_secret_key=WEBHOOK_SECRET,
        default_price_id="price_123",
        database_url="sqlite://",
        checkout_success_url="https://example.com/success",
        checkout_cancel_url="https://example.com/cancel",
        diagnostic_log_enabled=False,
    )


@pytest.fixture
def stripe_recorder():
    return StripeRecorder()


@pytest.fixture
def services(settings, engine, cache, stripe_recorder):
    services = build_services(
        settings,
        engine=engine,
        cache=cache,
        identity_transport=httpx.MockTransport(tokeninfo_handler),
        stripe_transport=httpx.MockTransport(stripe_recorder),
    )
    yield services
    services.verifier.close()
    services.stripe.close()
