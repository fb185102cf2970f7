"""
API key validation for the relay endpoints.

The gateway accepts a single process-wide secret. When it is configured,
callers may present it through one of four channels; the validator reports
which channel matched so the header transformer can keep the credential
from leaking to the target.
"""

import hmac
from typing import Iterable, Mapping, Optional

from ..models.forwarding import AuthMethod, AuthOutcome

KEY_QUERY_PARAMS = ("key", "apikey", "api_key")
API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"
BEARER_PREFIX = "Bearer "
APIKEY_PREFIX = "ApiKey "

AUTH_METHODS = [
    "URL parameter: ?key=YOUR_API_KEY",
    "Request header: X-API-Key: YOUR_API_KEY",
    "Authorization: Bearer YOUR_API_KEY",
    "Authorization: ApiKey YOUR_API_KEY",
]


class ApiKeyValidator:
    """
    Decides whether an inbound call is authorized.

    The secret is fixed at construction. Without a secret the validator runs
    in open mode and authorizes every call without consulting credentials.
    """

    def __init__(self, secret: Optional[str] = None):
        self._secret = secret or None

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    @property
    def auth_mode(self) -> str:
        """Value reported in the X-Proxy-Auth header."""
        return "required" if self.enabled else "disabled"

    def validate(self, query_params: Mapping[str, str], headers: Mapping[str, str]) -> AuthOutcome:
        """
        Check the inbound credentials against the gateway secret.

        Channels are tried in order: URL parameter, X-API-Key header,
        Authorization Bearer, Authorization ApiKey. The first match wins.

        Args:
            query_params: Inbound query parameters
            headers: Inbound headers (case-insensitive mapping)

        Returns:
            AuthOutcome naming the matched channel, or unauthorized
        """
        if self._secret is None:
            return AuthOutcome(authorized=True)

        for method, candidate in self._candidates(query_params, headers):
            if candidate and self._matches(candidate):
                return AuthOutcome(authorized=True, matched_via=method)

        return AuthOutcome(authorized=False)

    def _candidates(self, query_params: Mapping[str, str], headers: Mapping[str, str]) -> Iterable:
        yield AuthMethod.URL_PARAM, _first_non_empty(query_params.get(name) for name in KEY_QUERY_PARAMS)
        yield AuthMethod.HEADER_X_API_KEY, _header(headers, API_KEY_HEADER)

        authorization = _header(headers, AUTHORIZATION_HEADER) or ""
        if authorization.startswith(BEARER_PREFIX):
            yield AuthMethod.HEADER_AUTHORIZATION_BEARER, authorization[len(BEARER_PREFIX):]
        elif authorization.startswith(APIKEY_PREFIX):
            yield AuthMethod.HEADER_AUTHORIZATION_APIKEY, authorization[len(APIKEY_PREFIX):]

    def _matches(self, candidate: str) -> bool:
        return hmac.compare_digest(candidate.encode("utf-8"), self._secret.encode("utf-8"))


def _first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette and httpx headers are case-insensitive; plain dicts are not.
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value
