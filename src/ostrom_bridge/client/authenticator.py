"""
OAuth2 client-credentials authentication against the Ostrom token endpoint.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from ostrom_bridge.client.rate_limiter import RateLimiter
from ostrom_bridge.exceptions import AuthenticationError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.auth import Credential, TokenResponse
from ostrom_bridge.utils.time_utils import utc_now

logger = get_logger(__name__)

TOKEN_PATH = "/oauth2/token"


class Authenticator:
    """Obtains and caches a bearer credential, refreshing it once it has expired."""

    def __init__(
        self,
        auth_url: str,
        client_id: str,
        client_secret: str,
        rate_limiter: RateLimiter,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.auth_url = auth_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._rate_limiter = rate_limiter
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def is_fresh(self) -> bool:
        return self._credential is not None and self._clock() <= self._credential.expires_at

    async def ensure_fresh(self) -> None:
        """
        Make sure a valid credential is cached, exchanging a new one if needed.

        Concurrent callers share a single exchange.
        """
        if self.is_fresh():
            return

        async with self._lock:
            if self.is_fresh():
                return
            logger.info("(Re-)authentication required, retrieving token")
            await self.authenticate()

    async def authenticate(self) -> Credential:
        """Perform a client-credentials exchange through the rate limiter."""
        return await self._rate_limiter.wrap(self._exchange)()

    def header(self) -> str:
        """Authorization header value; only valid after ensure_fresh()."""
        token = self._credential.access_token if self._credential else None
        return f"Bearer {token}"

    async def _exchange(self) -> Credential:
        logger.info("Authenticating against Ostrom API", auth_url=self.auth_url)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.auth_url}{TOKEN_PATH}",
                    data={"grant_type": "client_credentials"},
                    headers={"Accept": "application/json"},
                    auth=(self._client_id, self._client_secret),
                )
        except httpx.HTTPError as e:
            logger.error("Token exchange failed", error=str(e))
            raise AuthenticationError(f"Failed to authenticate: {e}")

        if response.is_error:
            logger.error("Token exchange rejected", status_code=response.status_code)
            raise AuthenticationError(f"Failed to authenticate: {_payload(response)}")

        try:
            token = TokenResponse(**response.json())
        except (ValueError, ValidationError) as e:
            raise AuthenticationError(f"Malformed token response: {e}")

        exchanged_at = self._clock()
        self._credential = Credential(
            access_token=token.access_token,
            expires_at=exchanged_at + timedelta(seconds=token.expires_in),
        )

        logger.info("Authentication successful", expires_at=self._credential.expires_at.isoformat())
        return self._credential


def _payload(response: httpx.Response):
    """Decoded error body, falling back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text
