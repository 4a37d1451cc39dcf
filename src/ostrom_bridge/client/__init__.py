"""
Client package for the Ostrom API.
Holds the process-wide rate limiter shared by authentication and data calls.
"""

from ostrom_bridge.config import settings

from .authenticator import Authenticator
from .client import OstromClient
from .rate_limiter import RateLimiter

rate_limiter = RateLimiter(
    capacity=settings.rate_limit_capacity,
    refill_interval=settings.rate_limit_interval_seconds,
)

authenticator = Authenticator(
    auth_url=settings.auth_url,
    client_id=settings.client_id,
    client_secret=settings.client_secret,
    rate_limiter=rate_limiter,
    timeout=settings.request_timeout_seconds,
)

ostrom_client = OstromClient(
    api_url=settings.api_url,
    authenticator=authenticator,
    rate_limiter=rate_limiter,
    timeout=settings.request_timeout_seconds,
)

__all__ = [
    "Authenticator",
    "OstromClient",
    "RateLimiter",
    "authenticator",
    "ostrom_client",
    "rate_limiter",
]
