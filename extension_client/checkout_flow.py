"""
Client side of the payment flow.

request_checkout() obtains a checkout URL; proceed_to_payment() marks the
payment as pending (which suspends the local status cache) and opens the
processor's page. Completion is only learned on the next status check.
"""

import logging
import time
import webbrowser
from typing import Callable

from .identity import IdentityProvider, NotSignedInError
from .retry import RetryConfig, retry_with_backoff
from .status import PAYMENT_STATE_KEY, PaymentState
from .storage import LocalStorage
from .transport import ACTION_CREATE_CHECKOUT, GatewayTransport, TransportError

logger = logging.getLogger(__name__)


class CheckoutFlowError(Exception):
    """The checkout could not be started. Shown to the user; never retried silently."""


class CheckoutFlow:
    def __init__(
        self,
        *,
        identity_provider: IdentityProvider,
        transport: GatewayTransport,
        storage: LocalStorage,
        retry_config: RetryConfig = RetryConfig(),
        open_url: Callable[[str], object] = webbrowser.open,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.identity_provider = identity_provider
        self.transport = transport
        self.storage = storage
        self.retry_config = retry_config
        self._open_url = open_url
        self._sleep = sleep

    def request_checkout(self) -> str:
        """Return the checkout URL for the signed-in user."""
        try:
            identity = self.identity_provider.get_identity(interactive=True)
        except NotSignedInError as e:
            raise CheckoutFlowError("Could not get auth token.") from e

        try:
            data = retry_with_backoff(
                lambda: self.transport.post_action(ACTION_CREATE_CHECKOUT, identity.token),
                self.retry_config,
                retry_on=(TransportError,),
                sleep=self._sleep,
            )
        except TransportError as e:
            logger.error("Payment setup failed", extra={"error": str(e)})
            raise CheckoutFlowError(str(e)) from e

        checkout_url = data.get("checkoutUrl")
        if not checkout_url:
            logger.error("No checkout URL returned", extra={"error": data.get("error")})
            raise CheckoutFlowError("Could not retrieve checkout URL.")
        return str(checkout_url)

    def proceed_to_payment(self, checkout_url: str) -> None:
        self.storage.set(**{PAYMENT_STATE_KEY: PaymentState.PENDING.value})
        logger.info("Payment marked pending, opening checkout")
        self._open_url(checkout_url)
