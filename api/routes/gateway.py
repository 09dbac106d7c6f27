"""
Single POST entry point used by the browser extension and by Stripe.

SECURITY:
- Stripe deliveries are recognised by the webhook_secret query parameter,
  compared in constant time. Signature headers are not relied upon.
- The user's email always comes from the verified token, never the body.
- Webhook deliveries are ALWAYS acknowledged with 200, whatever happened
  internally, to stop redelivery storms. Failures are logged only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.concurrency import run_in_threadpool

from api.errors import (
    MISSING_TOKEN_MESSAGE,
    AppError,
    AuthenticationError,
    CheckoutUnavailableError,
    InvalidActionError,
    UnexpectedServerError,
)
from api.services import GatewayServices
from billing.checkout import CheckoutSessionError
from billing.stripe_client import verify_webhook_secret
from entitlements.service import EntitlementEvaluationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gateway"])

WEBHOOK_ACK_BODY = "<p>OK</p>"

ACTION_VERIFY = "verify"
ACTION_CREATE_CHECKOUT = "createCheckout"


class ClientActionRequest(BaseModel):
    """Body sent by the extension."""
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    token: Optional[str] = None


def get_services(request: Request) -> GatewayServices:
    return request.app.state.services


@router.post("/")
async def handle_post(
    request: Request,
    webhook_secret: Optional[str] = Query(default=None),
):
    services = get_services(request)
    body = await request.body()

    if verify_webhook_secret(webhook_secret, services.settings.webhook_secret_key):
        return await handle_stripe_webhook(services, body)

    try:
        action_request = ClientActionRequest.model_validate_json(body)
    except ValidationError as e:
        logger.warning("Unparseable client request", extra={"error": str(e)[:200]})
        return JSONResponse(UnexpectedServerError().to_dict())

    try:
        result = await run_in_threadpool(handle_client_action, services, action_request)
    except AppError as e:
        return JSONResponse(e.to_dict())
    return JSONResponse(result)


async def handle_stripe_webhook(services: GatewayServices, body: bytes) -> HTMLResponse:
    try:
        outcome = await run_in_threadpool(services.webhooks.ingest, body)
        logger.info("Webhook acknowledged", extra={"outcome": outcome.value})
    except Exception as e:
        logger.error("Webhook ingestion raised", extra={"error": str(e)})
    return HTMLResponse(WEBHOOK_ACK_BODY, status_code=200)


def handle_client_action(services: GatewayServices, action_request: ClientActionRequest) -> dict:
    """
    Authenticate and dispatch a client action.

    Raises:
        AppError: Converted to {"error": message} by the route
    """
    if not action_request.token:
        raise AuthenticationError(MISSING_TOKEN_MESSAGE)

    identity = services.verifier.verify(action_request.token)
    if identity is None:
        raise AuthenticationError()

    if action_request.action == ACTION_VERIFY:
        return _handle_verify(services, identity.email)
    if action_request.action == ACTION_CREATE_CHECKOUT:
        return _handle_create_checkout(services, identity.email)

    raise InvalidActionError(action_request.action)


def _handle_verify(services: GatewayServices, email: str) -> dict:
    try:
        decision = services.entitlements.resolve(email)
    except EntitlementEvaluationError as e:
        logger.error("Entitlement evaluation failed", extra={
            "email": email,
            "error_code": e.error_code,
        })
        raise UnexpectedServerError()
    except Exception as e:
        logger.error("Unexpected error during verify", extra={"email": email, "error": str(e)})
        raise UnexpectedServerError()
    return decision.to_dict()


def _handle_create_checkout(services: GatewayServices, email: str) -> dict:
    try:
        session = services.checkout.create_checkout_session(email)
    except CheckoutSessionError as e:
        logger.error("Checkout creation failed", extra={"email": email, "error": str(e)})
        raise CheckoutUnavailableError()
    except Exception as e:
        logger.error("Unexpected error creating checkout", extra={"email": email, "error": str(e)})
        raise CheckoutUnavailableError()
    return session.to_dict()
