"""
Google access-token verification.

Any failure (network, non-200, missing email) means "unauthenticated". The
caller turns that into an explicit error response, never a crash and never
an entitled state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    email: str
    email_verified: Optional[bool] = None
    expires_in: Optional[int] = None


class GoogleTokenVerifier:
    """Verifies OAuth access tokens against Google's tokeninfo endpoint."""

    def __init__(
        self,
        tokeninfo_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.tokeninfo_url = tokeninfo_url
        self._http_client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http_client.close()

    def verify(self, token: str) -> Optional[VerifiedIdentity]:
        if not token:
            return None

        try:
            response = self._http_client.get(self.tokeninfo_url, params={"access_token": token})
        except httpx.RequestError as e:
            logger.error("Token verification request failed", extra={"error": str(e)})
            return None

        if response.status_code != 200:
            logger.info("Token rejected by identity provider", extra={
                "status_code": response.status_code,
            })
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error("Identity provider returned non-JSON body")
            return None

        email = str(data.get("email") or "").strip() if isinstance(data, dict) else ""
        if not email:
            logger.info("Token has no email claim")
            return None

        expires_in = data.get("expires_in")
        return VerifiedIdentity(
            email=email,
            email_verified=_as_bool(data.get("email_verified")),
            expires_in=int(expires_in) if str(expires_in or "").isdigit() else None,
        )


def _as_bool(value) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"
