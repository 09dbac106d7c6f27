"""One-time Stripe checkout and payment-completion webhook ingestion."""

from billing.checkout import CheckoutSession, CheckoutSessionError, PaymentSessionInitiator
from billing.stripe_client import StripeAPIError, StripeClient, verify_webhook_secret
from billing.webhooks import WebhookIngestor, WebhookOutcome

__all__ = [
    "CheckoutSession",
    "CheckoutSessionError",
    "PaymentSessionInitiator",
    "StripeAPIError",
    "StripeClient",
    "verify_webhook_secret",
    "WebhookIngestor",
    "WebhookOutcome",
]
