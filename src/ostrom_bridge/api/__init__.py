"""
API package for the Ostrom spot-price bridge.
Contains FastAPI route handlers.
"""

from .routes import router

__all__ = [
    "router",
]
