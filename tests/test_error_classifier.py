"""Tests for transport failure classification."""

import asyncio
import socket
import ssl

import httpx
import pytest

from relay_gateway.core.error_classifier import FAILURE_RULES, GENERIC_RULE, classify
from relay_gateway.models.forwarding import ErrorKind


def chained(outer: Exception, inner: BaseException) -> Exception:
    """Attach inner as the cause of outer, the way httpx re-raises transport errors."""
    outer.__cause__ = inner
    return outer


class TestClassification:
    """Each failure category maps to its kind."""

    @pytest.mark.parametrize("error", [
        httpx.ConnectTimeout("timed out"),
        httpx.ReadTimeout("The read operation timed out"),
        httpx.PoolTimeout(""),
        asyncio.TimeoutError(),
    ])
    def test_timeout(self, error):
        assert classify(error).kind is ErrorKind.TIMEOUT

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("[Errno -2] Name or service not known"),
        httpx.ConnectError("[Errno 8] nodename nor servname provided, or not known"),
        httpx.ConnectError("[Errno -3] Temporary failure in name resolution"),
        httpx.ConnectError("getaddrinfo ENOTFOUND example.invalid"),
        chained(httpx.ConnectError("connection failed"), socket.gaierror(-2, "lookup failed")),
    ])
    def test_dns_failure(self, error):
        assert classify(error).kind is ErrorKind.DNS_FAILURE

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("[Errno 111] Connection refused"),
        httpx.ConnectError("connect ECONNREFUSED 93.184.216.34:443"),
        chained(httpx.ConnectError("connection failed"), ConnectionRefusedError()),
    ])
    def test_connection_refused(self, error):
        assert classify(error).kind is ErrorKind.CONNECTION_REFUSED

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed"),
        chained(httpx.ConnectError("handshake failed"), ssl.SSLError(1, "wrong version number")),
    ])
    def test_tls_failure(self, error):
        assert classify(error).kind is ErrorKind.TLS_FAILURE

    @pytest.mark.parametrize("error", [
        httpx.ReadError("[Errno 104] Connection reset by peer"),
        chained(httpx.ReadError("read failed"), ConnectionResetError()),
    ])
    def test_connection_reset(self, error):
        assert classify(error).kind is ErrorKind.CONNECTION_RESET

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("[Errno 113] No route to host"),
        httpx.ConnectError("[Errno 101] Network is unreachable"),
        httpx.ConnectError("connect EHOSTUNREACH 203.0.113.7:80"),
    ])
    def test_host_unreachable(self, error):
        assert classify(error).kind is ErrorKind.HOST_UNREACHABLE

    @pytest.mark.parametrize("error", [
        httpx.RemoteProtocolError("Server disconnected without sending a response."),
        httpx.ConnectError(""),
        RuntimeError("something odd"),
    ])
    def test_generic_failure(self, error):
        """Test unclassified failures still carry suggestions."""
        classification = classify(error)

        assert classification.kind is ErrorKind.GENERIC_FAILURE
        assert classification.suggestions
        assert classification.details

    def test_first_matching_rule_wins(self):
        """Test a timeout that mentions SSL is still a timeout."""
        error = httpx.ConnectTimeout("_ssl.c:980: The handshake operation timed out")

        assert classify(error).kind is ErrorKind.TIMEOUT


class TestRuleTable:
    """The rule table is complete and its suggestions are fixed."""

    def test_every_kind_has_a_rule(self):
        kinds = {rule.kind for rule in FAILURE_RULES} | {GENERIC_RULE.kind}

        assert kinds == set(ErrorKind)

    @pytest.mark.parametrize("rule", FAILURE_RULES + (GENERIC_RULE,), ids=lambda rule: rule.kind.value)
    def test_suggestion_count(self, rule):
        assert 2 <= len(rule.suggestions) <= 5

    def test_suggestions_are_copies(self):
        """Test callers cannot mutate the shared table through a result."""
        first = classify(httpx.ConnectTimeout("timed out"))
        first.suggestions.append("mutated")

        second = classify(httpx.ConnectTimeout("timed out"))

        assert "mutated" not in second.suggestions
