"""
Models for the OAuth2 client-credentials exchange.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """Body returned by the token endpoint."""
    access_token: str
    expires_in: int = Field(description="Lifetime of the token in seconds")
    token_type: str = "Bearer"


class Credential(BaseModel):
    """
    A bearer token together with the instant it stops being valid.
    Replaced as a whole on refresh.
    """
    access_token: str
    expires_at: datetime

    class Config:
        frozen = True
