"""
Domain exceptions for the Ostrom spot-price bridge.
Provides clear, typed exceptions for upstream and business logic errors.
"""

from typing import Any, Optional


class OstromBridgeError(Exception):
    """Base exception for all bridge errors."""
    pass


class AuthenticationError(OstromBridgeError):
    """Raised when the client-credentials exchange is rejected or fails."""
    pass


class UpstreamRequestError(OstromBridgeError):
    """Raised when an Ostrom data endpoint answers with a non-success response."""

    def __init__(self, operation: str, payload: Any = None, status_code: Optional[int] = None):
        self.operation = operation
        self.payload = payload
        self.status_code = status_code
        super().__init__(f"{operation} failed (status={status_code}): {payload}")


class DataAbsentError(OstromBridgeError):
    """Raised when an expected hour is missing from a price series."""
    pass


class InvalidPriceSeriesError(OstromBridgeError):
    """Raised when a price series is built from empty or malformed input."""
    pass


class InvalidTriggerArgumentError(OstromBridgeError):
    """Raised for unknown trigger ids and missing or malformed trigger arguments."""
    pass


class MeterNotInitializedError(OstromBridgeError):
    """Raised when an incremental top-up runs before the historical backfill."""
    pass


class ContractNotFoundError(OstromBridgeError):
    """Raised when the configured contract is not linked to the external user."""
    pass


class DatabaseError(OstromBridgeError):
    """Raised when meter state persistence fails."""
    pass
