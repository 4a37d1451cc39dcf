"""
Application configuration management using Pydantic Settings.
Handles environment variables and default values for the service.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables (prefix OSTROM_).
    """

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host address")
    api_port: int = Field(default=8000, description="API port")
    api_debug: bool = Field(default=False, description="Enable debug mode")
    api_reload: bool = Field(default=False, description="Enable auto-reload")

    # Ostrom API Configuration
    auth_url: str = Field(
        default="https://auth.production.ostrom-api.io",
        description="Base URL of the OAuth2 token endpoint"
    )
    api_url: str = Field(
        default="https://production.ostrom-api.io",
        description="Base URL of the Ostrom data API"
    )
    client_id: str = Field(default="", description="OAuth2 client id")
    client_secret: str = Field(default="", description="OAuth2 client secret")
    request_timeout_seconds: float = Field(default=30.0, description="Timeout for upstream requests")

    # Contract Configuration
    external_user_id: str = Field(default="", description="External user id the contract is linked to")
    contract_id: Optional[int] = Field(
        default=None,
        description="Contract to bridge; the first active contract is used when unset"
    )
    redirect_url: str = Field(
        default="http://localhost:8000/redirect.html",
        description="Redirect URL handed to the account-link flow"
    )
    account_link_scopes: List[str] = Field(
        default=["contract:read:data", "order:read:data"],
        description="Scopes requested when creating an account link"
    )

    # Rate Limiting Configuration (shared by every outbound call)
    rate_limit_capacity: int = Field(default=50, ge=1, description="Requests allowed per window")
    rate_limit_interval_seconds: float = Field(default=60.0, gt=0, description="Length of the rate window")

    # Scheduler Configuration
    timezone: str = Field(default="Europe/Berlin", description="Timezone defining 'today' and time-of-day filters")
    jitter_min_seconds: int = Field(default=0, ge=0, description="Minimum jitter added after the top of the hour")
    jitter_max_seconds: int = Field(default=60, ge=0, description="Maximum jitter added after the top of the hour")

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection URL for the meter state; in-memory when unset"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json/text)")

    class Config:
        env_prefix = "OSTROM_"
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
