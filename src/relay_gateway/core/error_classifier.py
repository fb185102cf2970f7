"""
Transport failure classification.

An outbound call can fail in many ways and the exceptions that reach the
gateway are layered: httpx wraps httpcore, which wraps the socket or ssl
error that actually happened. The classifier walks that cause chain and
matches it against an ordered rule table. The first rule whose exception
types or message markers match decides the kind, message and suggestions
reported to the caller.
"""

import asyncio
import socket
import ssl
from dataclasses import dataclass, field
from typing import List, Tuple, Type

import httpx

from ..models.forwarding import ErrorKind


@dataclass(frozen=True)
class FailureRule:
    """One row of the classification table."""

    kind: ErrorKind
    message: str
    details: str
    suggestions: Tuple[str, ...]
    exception_types: Tuple[Type[BaseException], ...] = ()
    markers: Tuple[str, ...] = ()


@dataclass
class Classification:
    """A classified transport failure."""

    kind: ErrorKind
    message: str
    details: str
    suggestions: List[str] = field(default_factory=list)


FAILURE_RULES: Tuple[FailureRule, ...] = (
    FailureRule(
        kind=ErrorKind.TIMEOUT,
        message="Request timed out",
        details="The request exceeded the time budget without a response",
        suggestions=(
            "The target server is responding too slowly",
            "Try a faster API endpoint",
            "Reduce the size of the request or response",
        ),
        exception_types=(httpx.TimeoutException, asyncio.TimeoutError, TimeoutError),
        markers=("timed out", "timeout"),
    ),
    FailureRule(
        kind=ErrorKind.DNS_FAILURE,
        message="Domain name resolution failed",
        details="The target domain could not be resolved",
        suggestions=(
            "Check that the domain name is spelled correctly",
            "Confirm that the domain exists",
            "The DNS service may be having problems",
        ),
        exception_types=(socket.gaierror,),
        markers=(
            "enotfound",
            "name or service not known",
            "nodename nor servname",
            "getaddrinfo failed",
            "temporary failure in name resolution",
            "no address associated",
        ),
    ),
    FailureRule(
        kind=ErrorKind.CONNECTION_REFUSED,
        message="Connection refused",
        details="The target server refused the connection",
        suggestions=(
            "The server may be down",
            "The port may be blocked",
            "A firewall may be rejecting the connection",
        ),
        exception_types=(ConnectionRefusedError,),
        markers=("econnrefused", "connection refused"),
    ),
    FailureRule(
        kind=ErrorKind.TLS_FAILURE,
        message="SSL certificate error",
        details="Certificate validation failed for the target site",
        suggestions=(
            "The certificate may have expired",
            "The certificate may not be trusted",
            "Try HTTP instead of HTTPS",
        ),
        exception_types=(ssl.SSLError, ssl.CertificateError),
        markers=("certificate", "ssl", "tls"),
    ),
    FailureRule(
        kind=ErrorKind.CONNECTION_RESET,
        message="Connection reset",
        details="The connection was reset during the transfer",
        suggestions=(
            "The network may be unstable",
            "The server closed the connection",
            "The target may be rate limiting requests",
        ),
        exception_types=(ConnectionResetError,),
        markers=("econnreset", "connection reset"),
    ),
    FailureRule(
        kind=ErrorKind.HOST_UNREACHABLE,
        message="Host unreachable",
        details="The target host could not be reached",
        suggestions=(
            "There may be a network routing problem",
            "The target server may be offline",
            "A firewall may be blocking access",
        ),
        markers=("ehostunreach", "no route to host", "host is unreachable", "network is unreachable"),
    ),
)

GENERIC_RULE = FailureRule(
    kind=ErrorKind.GENERIC_FAILURE,
    message="Network request failed",
    details="A generic network error occurred",
    suggestions=(
        "The target server may not exist or may be down",
        "The SSL/TLS handshake may have failed",
        "There may be a network connectivity problem",
        "The target API may not accept requests from this gateway",
        "A CORS or other security restriction may apply",
    ),
)


def classify(exc: BaseException) -> Classification:
    """
    Map a transport failure onto the error taxonomy.

    Args:
        exc: Exception raised while issuing the outbound call

    Returns:
        Classification with a kind, fixed message and remediation suggestions
    """
    chain = _exception_chain(exc)
    text = " | ".join(f"{type(error).__name__}: {error}" for error in chain).lower()

    for rule in FAILURE_RULES:
        if rule.exception_types and any(isinstance(error, rule.exception_types) for error in chain):
            return _from_rule(rule)
        if any(marker in text for marker in rule.markers):
            return _from_rule(rule)

    return Classification(
        kind=GENERIC_RULE.kind,
        message=GENERIC_RULE.message,
        details=str(exc) or GENERIC_RULE.details,
        suggestions=list(GENERIC_RULE.suggestions),
    )


def _from_rule(rule: FailureRule) -> Classification:
    return Classification(
        kind=rule.kind,
        message=rule.message,
        details=rule.details,
        suggestions=list(rule.suggestions),
    )


def _exception_chain(exc: BaseException) -> List[BaseException]:
    chain: List[BaseException] = []
    current = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain
