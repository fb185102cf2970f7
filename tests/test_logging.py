"""Tests for the gateway log processor."""

from relay_gateway import __version__
from relay_gateway.core.logging import SERVICE_NAME, add_gateway_context


class TestGatewayContext:
    """Every event carries the gateway identity and no credential value."""

    def test_identity_added(self):
        event = add_gateway_context(None, "info", {"event": "relay_request_received"})

        assert event["service"] == SERVICE_NAME
        assert event["version"] == __version__

    def test_credentials_redacted(self):
        event = add_gateway_context(None, "warning", {"event": "x", "key": "S3CR3T", "authorization": "Bearer S3CR3T"})

        assert event["key"] == "***"
        assert event["authorization"] == "***"

    def test_other_keys_untouched(self):
        event = add_gateway_context(None, "info", {"event": "x", "target_url": "https://example.com"})

        assert event["target_url"] == "https://example.com"
