"""
Forwarding pipeline value types.

These are plain dataclasses built once per relayed call and discarded after
the response is written; nothing here is persisted or shared between calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

ALLOWED_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
"""Methods the gateway will execute against a target."""

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
"""Methods whose outbound call carries the request body."""


class AuthMethod(str, Enum):
    """Channel through which the gateway secret was presented."""

    NONE = "none"
    URL_PARAM = "url_param"
    HEADER_X_API_KEY = "header_x_api_key"
    HEADER_AUTHORIZATION_BEARER = "header_authorization_bearer"
    HEADER_AUTHORIZATION_APIKEY = "header_authorization_apikey"

    @property
    def consumed_header(self) -> Optional[str]:
        """Inbound header that carried the credential, if any."""
        if self is AuthMethod.HEADER_X_API_KEY:
            return "x-api-key"
        if self in (AuthMethod.HEADER_AUTHORIZATION_BEARER, AuthMethod.HEADER_AUTHORIZATION_APIKEY):
            return "authorization"
        return None


@dataclass(frozen=True)
class AuthOutcome:
    """Result of checking an inbound call against the gateway secret."""

    authorized: bool
    matched_via: AuthMethod = AuthMethod.NONE


class TargetRejection(str, Enum):
    """Why a target URL was refused."""

    BAD_URL = "bad_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    PRIVATE_OR_LOCAL_HOST = "private_or_local_host"
    DISALLOWED_PORT = "disallowed_port"


@dataclass(frozen=True)
class TargetVerdict:
    """Outcome of vetting a target URL."""

    accepted: bool
    reason: Optional[TargetRejection] = None
    scheme: Optional[str] = None
    hostname: Optional[str] = None
    port: Optional[int] = None


@dataclass
class ForwardRequest:
    """An outbound call as described by the inbound request."""

    target_url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    extra_headers: Optional[Dict[str, str]] = None

    @property
    def outbound_body(self) -> Optional[str]:
        """Body to attach to the outbound call, only for methods that carry one."""
        if self.method in BODY_METHODS and self.body:
            return self.body
        return None


class ErrorKind(str, Enum):
    """Categories of outbound transport failure."""

    TIMEOUT = "timeout"
    DNS_FAILURE = "dns_failure"
    CONNECTION_REFUSED = "connection_refused"
    TLS_FAILURE = "tls_failure"
    CONNECTION_RESET = "connection_reset"
    HOST_UNREACHABLE = "host_unreachable"
    GENERIC_FAILURE = "generic_failure"


@dataclass
class ForwardSuccess:
    """Upstream answered and its body was read."""

    status_code: int
    status_text: str
    headers: List[Tuple[str, str]]
    body_text: str
    duration_ms: int


@dataclass
class ForwardFailure:
    """The outbound call did not complete."""

    kind: ErrorKind
    message: str
    details: str
    suggestions: List[str]
    duration_ms: int


ForwardOutcome = Union[ForwardSuccess, ForwardFailure]


__all__ = [
    "ALLOWED_METHODS",
    "BODY_METHODS",
    "AuthMethod",
    "AuthOutcome",
    "TargetRejection",
    "TargetVerdict",
    "ForwardRequest",
    "ErrorKind",
    "ForwardSuccess",
    "ForwardFailure",
    "ForwardOutcome",
]
