"""
HTTP transport from the extension client to the gateway.

Any network error, non-2xx status or undecodable body is a TransportError,
which is what retry_with_backoff retries on. An {"error": ...} body is a
successful transport call and is returned to the caller as-is.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

ACTION_VERIFY = "verify"
ACTION_CREATE_CHECKOUT = "createCheckout"


class TransportError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayTransport:
    def __init__(
        self,
        endpoint: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not endpoint:
            raise ValueError("endpoint is required")
        self.endpoint = endpoint
        self._http_client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http_client.close()

    def post_action(self, action: str, token: str) -> Dict[str, Any]:
        try:
            response = self._http_client.post(
                self.endpoint,
                json={"action": action, "token": token},
                follow_redirects=True,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Server responded with status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("Server returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise TransportError("Server returned an unexpected body")
        return data
