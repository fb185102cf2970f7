"""
Request extraction strategies.

The two relay endpoints describe the outbound call differently. The direct
relay uses the inbound verb and body; the GET-encoded relay packs method,
headers and body into query parameters. Each strategy turns an inbound
Starlette request into a ForwardRequest so the forwarding pipeline itself
is shared.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

from starlette.requests import ClientDisconnect, Request

from ..models.forwarding import ALLOWED_METHODS, BODY_METHODS, ForwardRequest
from .exceptions import InvalidRequestError


class RequestExtractor(ABC):
    """Builds a ForwardRequest from an inbound request."""

    name: str = "relay"
    usage_example: str = ""

    @abstractmethod
    async def extract(self, request: Request) -> ForwardRequest:
        """
        Extract the outbound call description.

        Raises:
            InvalidRequestError: If the inbound request is malformed
        """

    def response_headers(self, forward_request: ForwardRequest) -> List[Tuple[str, str]]:
        """Variant-specific headers added to a relayed success response."""
        return []

    def failure_context(self, forward_request: ForwardRequest, outbound_headers: Mapping[str, str]) -> Dict[str, Any]:
        """Variant-specific fields added to the 502 body of a failed outbound call."""
        return {}


class DirectRelayExtractor(RequestExtractor):
    """Method from the inbound verb, body from the inbound body."""

    name = "direct"
    usage_example = "/api/proxy?url=https://jsonplaceholder.typicode.com/posts/1&key=YOUR_API_KEY"

    async def extract(self, request: Request) -> ForwardRequest:
        method = request.method.upper()
        body = None
        if method in BODY_METHODS:
            body = await self._read_body(request)

        return ForwardRequest(
            target_url=request.query_params.get("url", ""),
            method=method,
            headers=request.headers,
            body=body,
        )

    async def _read_body(self, request: Request) -> Optional[str]:
        try:
            raw = await request.body()
            return raw.decode("utf-8")
        except (ClientDisconnect, UnicodeDecodeError) as e:
            raise InvalidRequestError(
                "Failed to read request body",
                error_code="request_body_unreadable",
                details=str(e),
            ) from e


class QueryEncodedRelayExtractor(RequestExtractor):
    """
    Method, headers and body from query parameters.

    Parameters:
        url: target URL (required)
        method: HTTP method to execute, default GET
        headers: JSON object of extra request headers
        body / data: request body
    """

    name = "get_encoded"
    usage_example = '/api/get_proxy?url=https://api.example.com&method=POST&body={"key":"value"}&key=YOUR_API_KEY'
    parameters = {
        "url": "Target URL (required)",
        "method": "HTTP method (optional, default GET)",
        "headers": "Request headers as a JSON object string (optional)",
        "body": "Request body (optional)",
        "data": "Alias for body (optional)",
        "key": "API key (when authentication is enabled)",
    }

    async def extract(self, request: Request) -> ForwardRequest:
        params = request.query_params
        method = (params.get("method") or "GET").strip().upper()
        if method not in ALLOWED_METHODS:
            raise InvalidRequestError(
                "Unsupported HTTP method",
                error_code="unsupported_method",
                details="Use one of the supported HTTP methods",
                context={"method": method, "allowed_methods": list(ALLOWED_METHODS)},
            )

        return ForwardRequest(
            target_url=params.get("url", ""),
            method=method,
            headers=request.headers,
            body=params.get("body") or params.get("data"),
            extra_headers=parse_custom_headers(params.get("headers")),
        )

    def response_headers(self, forward_request: ForwardRequest) -> List[Tuple[str, str]]:
        return [
            ("X-Proxy-Method", forward_request.method),
            ("X-Proxy-Type", "get_proxy"),
        ]

    def failure_context(self, forward_request: ForwardRequest, outbound_headers: Mapping[str, str]) -> Dict[str, Any]:
        return {
            "request_config": {
                "url": forward_request.target_url,
                "method": forward_request.method,
                "headers": list(outbound_headers.keys()),
                "has_body": bool(forward_request.body),
            }
        }


def parse_custom_headers(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Parse the JSON-encoded header map of the GET-encoded relay.

    Raises:
        InvalidRequestError: If the value is not a JSON object
    """
    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise _invalid_headers(raw) from e

    if not isinstance(parsed, dict):
        raise _invalid_headers(raw)

    return {str(name): _header_value(value) for name, value in parsed.items()}


def _header_value(value) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _invalid_headers(raw: str) -> InvalidRequestError:
    return InvalidRequestError(
        "Invalid request headers format",
        error_code="invalid_headers",
        details="Request headers must be a valid JSON object",
        context={
            "headers": raw,
            "example": '{"Authorization": "Bearer token", "Content-Type": "application/json"}',
        },
    )
