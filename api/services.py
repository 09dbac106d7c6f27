"""
Service wiring for the gateway.

Every process-wide resource (engine, cache, HTTP clients) is built once
here and attached to app.state; nothing is created at import time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from api.config import Settings
from api.identity import GoogleTokenVerifier
from billing.checkout import PaymentSessionInitiator
from billing.stripe_client import StripeClient
from billing.webhooks import WebhookIngestor
from entitlements.cache import EntitlementCache
from entitlements.promotions import PromotionResolver
from entitlements.service import EntitlementService
from ledger.db import build_engine, build_session_factory
from ledger.store import LedgerStore


@dataclass
class GatewayServices:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    ledger: LedgerStore
    cache: EntitlementCache
    promotions: PromotionResolver
    entitlements: EntitlementService
    checkout: PaymentSessionInitiator
    webhooks: WebhookIngestor
    verifier: GoogleTokenVerifier
    stripe: StripeClient

    def close(self) -> None:
        self.verifier.close()
        self.stripe.close()
        self.engine.dispose()


def build_services(
    settings: Settings,
    *,
    engine: Optional[Engine] = None,
    cache: Optional[EntitlementCache] = None,
    identity_transport: Optional[httpx.BaseTransport] = None,
    stripe_transport: Optional[httpx.BaseTransport] = None,
) -> GatewayServices:
    engine = engine or build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    ledger = LedgerStore(session_factory)
    cache = cache or EntitlementCache(redis_url=settings.redis_url or "")

    promotions = PromotionResolver(source=ledger.list_promotions, cache=cache)
    entitlements = EntitlementService(ledger=ledger, promotions=promotions, cache=cache)

    stripe = StripeClient(
        settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.http_timeout_seconds,
        transport=stripe_transport,
    )
    checkout = PaymentSessionInitiator(
        stripe=stripe,
        promotions=promotions,
        price_id=settings.default_price_id,
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
    )
    verifier = GoogleTokenVerifier(
        settings.google_tokeninfo_url,
        timeout=settings.http_timeout_seconds,
        transport=identity_transport,
    )

    return GatewayServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        ledger=ledger,
        cache=cache,
        promotions=promotions,
        entitlements=entitlements,
        checkout=checkout,
        webhooks=WebhookIngestor(ledger=ledger, cache=cache),
        verifier=verifier,
        stripe=stripe,
    )
