"""
Client side of the premium gate: status checks with a local cache, the
checkout hand-off, and the mapping from decisions to UI states.
"""

from extension_client.checkout_flow import CheckoutFlow, CheckoutFlowError
from extension_client.config import ClientConfig, ClientConfigurationError
from extension_client.identity import Identity, IdentityProvider, NotSignedInError
from extension_client.retry import RetryConfig, retry_with_backoff
from extension_client.status import (
    PAYMENT_STATE_KEY,
    PREMIUM_CACHE_DURATION_SECONDS,
    PREMIUM_CACHE_KEY,
    ClientCacheEntry,
    PaymentState,
    PremiumStatusClient,
    RemoteStatusError,
    is_cache_trusted,
    read_payment_state,
)
from extension_client.storage import JsonFileStorage, LocalStorage, MemoryStorage
from extension_client.transport import GatewayTransport, TransportError
from extension_client.view import ExtensionView, ViewState, resolve_view, view_for_decision

__all__ = [
    "CheckoutFlow",
    "CheckoutFlowError",
    "ClientConfig",
    "ClientConfigurationError",
    "Identity",
    "IdentityProvider",
    "NotSignedInError",
    "RetryConfig",
    "retry_with_backoff",
    "PAYMENT_STATE_KEY",
    "PREMIUM_CACHE_DURATION_SECONDS",
    "PREMIUM_CACHE_KEY",
    "ClientCacheEntry",
    "PaymentState",
    "PremiumStatusClient",
    "RemoteStatusError",
    "is_cache_trusted",
    "read_payment_state",
    "JsonFileStorage",
    "LocalStorage",
    "MemoryStorage",
    "GatewayTransport",
    "TransportError",
    "ExtensionView",
    "ViewState",
    "resolve_view",
    "view_for_decision",
]
