"""
Header transformation for both relay legs.

Outbound, connection-specific headers and the header that carried the
gateway credential are removed before the call reaches the target.
Inbound, the upstream response headers are filtered and the CORS and
diagnostic headers of the gateway are added.
"""

import json
from typing import Iterable, List, Mapping, Optional, Tuple

import httpx

from ..models.forwarding import ALLOWED_METHODS, AuthMethod, AuthOutcome

# Hop-by-hop headers that must not reach the target (RFC 7230 §6.1).
# content-length is recomputed by httpx from the relayed body.
OUTBOUND_EXCLUDED_HEADERS = frozenset({
    "host",
    "connection",
    "upgrade",
    "proxy-connection",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "content-length",
})

# The relayed body is decoded text, so upstream encoding and length no longer apply.
RESPONSE_EXCLUDED_HEADERS = frozenset({
    "connection",
    "upgrade",
    "proxy-connection",
    "transfer-encoding",
    "content-encoding",
    "content-length",
})

CORS_ALLOW_METHODS = ", ".join(method for method in ALLOWED_METHODS if method != "HEAD")
PREFLIGHT_MAX_AGE = "86400"


class HeaderTransformer:
    """Builds the header sets sent to the target and relayed back to the caller."""

    def __init__(self, user_agent: str, auth_mode: str = "disabled"):
        """
        Args:
            user_agent: Gateway identifier sent as User-Agent on every outbound call
            auth_mode: "required" or "disabled", reported as X-Proxy-Auth
        """
        self.user_agent = user_agent
        self.auth_mode = auth_mode

    def build_outbound_headers(
        self,
        inbound_headers: Mapping[str, str],
        auth_outcome: AuthOutcome,
        extra_headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> httpx.Headers:
        """
        Compute the headers for the outbound call.

        Args:
            inbound_headers: Headers of the inbound request
            auth_outcome: Result of authentication; decides which credential header is dropped
            extra_headers: Caller-supplied headers that override inbound ones
            body: Outbound body, used to infer a Content-Type when none is set

        Returns:
            Case-insensitive header collection for httpx
        """
        consumed = auth_outcome.matched_via.consumed_header
        headers = httpx.Headers()

        for name, value in _items(inbound_headers):
            lowered = name.lower()
            if lowered in OUTBOUND_EXCLUDED_HEADERS or lowered == consumed:
                continue
            headers[name] = value

        # Caller-supplied headers may carry a target credential, never a hop-by-hop header.
        for name, value in (extra_headers or {}).items():
            if name.lower() in OUTBOUND_EXCLUDED_HEADERS:
                continue
            headers[name] = value

        headers["User-Agent"] = self.user_agent

        if body and "content-type" not in headers:
            headers["Content-Type"] = infer_content_type(body)

        return headers

    def build_response_headers(
        self,
        upstream_headers: Iterable[Tuple[str, str]],
        duration_ms: int,
        variant_headers: Optional[List[Tuple[str, str]]] = None,
    ) -> List[Tuple[str, str]]:
        """
        Compute the headers relayed back to the caller.

        Repeated upstream headers (Set-Cookie) are kept as separate entries.

        Args:
            upstream_headers: (name, value) pairs from the target response
            duration_ms: Elapsed time of the relayed call
            variant_headers: Gateway headers specific to the relay variant

        Returns:
            List of (name, value) pairs
        """
        gateway_headers = self.cors_headers() + self.diagnostic_headers(duration_ms) + list(variant_headers or [])
        overridden = {name.lower() for name, _ in gateway_headers}

        relayed = [
            (name, value)
            for name, value in upstream_headers
            if name.lower() not in RESPONSE_EXCLUDED_HEADERS and name.lower() not in overridden
        ]
        return relayed + gateway_headers

    def build_preflight_headers(self) -> List[Tuple[str, str]]:
        """Headers answering a CORS preflight request."""
        return [
            ("Access-Control-Allow-Origin", "*"),
            ("Access-Control-Allow-Methods", CORS_ALLOW_METHODS),
            ("Access-Control-Allow-Headers", "*"),
            ("Access-Control-Max-Age", PREFLIGHT_MAX_AGE),
        ]

    def cors_headers(self) -> List[Tuple[str, str]]:
        return [
            ("Access-Control-Allow-Origin", "*"),
            ("Access-Control-Allow-Methods", CORS_ALLOW_METHODS),
            ("Access-Control-Allow-Headers", "*"),
            ("Access-Control-Expose-Headers", "*"),
        ]

    def diagnostic_headers(self, duration_ms: int) -> List[Tuple[str, str]]:
        return [
            ("X-Proxy-Status", "success"),
            ("X-Proxy-Duration", f"{duration_ms}ms"),
            ("X-Proxy-Auth", self.auth_mode),
        ]


def infer_content_type(body: str) -> str:
    """Guess a Content-Type for a body the caller sent without one."""
    try:
        json.loads(body)
    except ValueError:
        return "text/plain"
    return "application/json"


def _items(headers: Mapping[str, str]) -> Iterable[Tuple[str, str]]:
    # Prefer the raw multi-value view when the mapping offers one.
    multi_items = getattr(headers, "multi_items", None)
    if callable(multi_items):
        return multi_items()
    return headers.items()


__all__ = [
    "HeaderTransformer",
    "OUTBOUND_EXCLUDED_HEADERS",
    "RESPONSE_EXCLUDED_HEADERS",
    "CORS_ALLOW_METHODS",
    "infer_content_type",
]
