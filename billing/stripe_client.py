"""
Stripe Checkout API client.

Only the one-time Checkout Session endpoint is used. Requests are
form-encoded with bracketed keys (line_items[0][price]) as Stripe expects.
Webhook deliveries are authenticated with a shared-secret query parameter
instead of a signature header; see verify_webhook_secret().
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com"


@dataclass
class StripeCheckoutSession:
    """Subset of the Checkout Session object the service relies on."""
    session_id: Optional[str]
    url: Optional[str]
    raw: Dict[str, Any]


class StripeAPIError(Exception):
    """Error from the Stripe API or the transport to it."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class StripeClient:
    """
    Synchronous Stripe client.

    Makes a single request per call. Retrying is the caller's decision.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = STRIPE_API_BASE,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not secret_key:
            raise ValueError("secret_key is required")
        self.api_base = api_base.rstrip("/")
        self._client = httpx.Client(
            headers={"Authorization": f"Bearer {secret_key}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def create_checkout_session(self, form: Dict[str, str]) -> StripeCheckoutSession:
        """
        Create a Checkout Session.

        Args:
            form: Flattened form fields (already bracket-encoded)

        Returns:
            StripeCheckoutSession; url is None when Stripe did not return one

        Raises:
            StripeAPIError: Transport failure or undecodable response
        """
        try:
            response = self._client.post(f"{self.api_base}/v1/checkout/sessions", data=form)
        except httpx.RequestError as e:
            logger.error("Stripe API request error", extra={"error": str(e)})
            raise StripeAPIError(f"Request failed: {str(e)}")

        try:
            data = response.json()
        except ValueError:
            logger.error("Stripe API returned non-JSON body", extra={
                "status_code": response.status_code,
                "response": response.text[:500],
            })
            raise StripeAPIError(
                f"Stripe API error: {response.status_code}",
                code=str(response.status_code),
            )

        if not isinstance(data, dict):
            raise StripeAPIError("Unexpected Stripe response shape")

        if response.status_code >= 400:
            # Stripe's structured error body; the caller decides what to surface
            logger.warning("Stripe API returned an error", extra={
                "status_code": response.status_code,
                "error": (data.get("error") or {}).get("message"),
            })

        return StripeCheckoutSession(
            session_id=data.get("id"),
            url=data.get("url"),
            raw=data,
        )


def stripe_error_message(data: Dict[str, Any]) -> str:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Unknown error"


def verify_webhook_secret(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of the webhook shared secret."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
