"""
Authentication module for the HTTP Relay Gateway.

The relay accepts a single process-wide API key presented through a URL
parameter, the X-API-Key header or the Authorization header.
"""

from .api_key import ApiKeyValidator, AUTH_METHODS
from ..models.forwarding import AuthMethod, AuthOutcome

__all__ = [
    "ApiKeyValidator",
    "AUTH_METHODS",
    "AuthMethod",
    "AuthOutcome",
]
