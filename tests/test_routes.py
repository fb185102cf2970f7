"""
Tests for the gateway endpoints.

Covers the GET-encoded relay parameters, health, network diagnostics and
the root information endpoint.
"""

import json

import httpx
import pytest

SECRET = "S3CR3T"


class TestEncodedRelay:
    """GET-encoded relay: method, headers and body from query parameters."""

    def test_defaults_to_get(self, make_client):
        client, transport = make_client()

        response = client.get("/api/get_proxy", params={"url": "https://example.com/items"})

        assert response.status_code == 200
        (outbound,) = transport.requests
        assert outbound.method == "GET"
        assert outbound.content == b""

    def test_method_is_case_insensitive(self, make_client):
        client, transport = make_client()

        client.get("/api/get_proxy", params={"url": "https://example.com", "method": "put", "body": "x"})

        (outbound,) = transport.requests
        assert outbound.method == "PUT"
        assert outbound.content == b"x"
        assert outbound.headers["content-type"] == "text/plain"

    def test_data_alias(self, make_client):
        """Test the data parameter is accepted when body is absent."""
        client, transport = make_client()

        client.get("/api/get_proxy", params={"url": "https://example.com", "method": "PATCH", "data": "[1,2]"})

        (outbound,) = transport.requests
        assert outbound.content == b"[1,2]"
        assert outbound.headers["content-type"] == "application/json"

    def test_body_ignored_for_get(self, make_client):
        client, transport = make_client()

        client.get("/api/get_proxy", params={"url": "https://example.com", "body": "dropped"})

        (outbound,) = transport.requests
        assert outbound.content == b""
        assert "content-type" not in outbound.headers

    def test_head_method(self, make_client):
        client, transport = make_client()

        response = client.get("/api/get_proxy", params={"url": "https://example.com", "method": "HEAD"})

        assert response.status_code == 200
        assert transport.requests[0].method == "HEAD"

    def test_custom_headers_override_inbound(self, make_client):
        """Test JSON-encoded headers replace inbound headers of the same name."""
        client, transport = make_client()

        client.get(
            "/api/get_proxy",
            params={
                "url": "https://example.com",
                "headers": json.dumps({"Accept": "application/xml", "X-Count": 3}),
            },
            headers={"Accept": "text/html"},
        )

        (outbound,) = transport.requests
        assert outbound.headers.get_list("accept") == ["application/xml"]
        assert outbound.headers["x-count"] == "3"

    def test_custom_headers_cannot_smuggle_hop_by_hop(self, make_client):
        """Test Host, Connection, TE and Proxy-Authorization in the headers parameter are not sent."""
        client, transport = make_client()

        response = client.get(
            "/api/get_proxy",
            params={
                "url": "https://example.com",
                "headers": json.dumps({
                    "Host": "internal.corp",
                    "Connection": "keep-alive, X",
                    "TE": "trailers",
                    "Proxy-Authorization": "Basic x",
                    "X-Extra": "1",
                }),
            },
        )

        assert response.status_code == 200
        (outbound,) = transport.requests
        assert outbound.headers["host"] == "example.com"
        assert "connection" not in outbound.headers
        assert "te" not in outbound.headers
        assert "proxy-authorization" not in outbound.headers
        assert outbound.headers["x-extra"] == "1"

    def test_success_carries_variant_headers(self, make_client):
        client, _ = make_client()

        response = client.get(
            "/api/get_proxy",
            params={"url": "https://example.com", "method": "POST", "body": "x"},
        )

        assert response.status_code == 200
        assert response.headers["X-Proxy-Method"] == "POST"
        assert response.headers["X-Proxy-Type"] == "get_proxy"
        assert response.headers["X-Proxy-Status"] == "success"

    def test_direct_relay_has_no_variant_headers(self, make_client):
        client, _ = make_client()

        response = client.get("/api/proxy", params={"url": "https://example.com"})

        assert "X-Proxy-Type" not in response.headers
        assert "X-Proxy-Method" not in response.headers

    def test_failure_echoes_request_config(self, make_client):
        """Test a failed encoded call reports what was attempted."""
        def handler(request):
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        client, _ = make_client(handler)

        response = client.get(
            "/api/get_proxy",
            params={
                "url": "https://example.com/items",
                "method": "POST",
                "body": '{"a":1}',
                "headers": json.dumps({"X-Extra": "1"}),
            },
        )

        assert response.status_code == 502
        config = response.json()["request_config"]
        assert config["url"] == "https://example.com/items"
        assert config["method"] == "POST"
        assert config["has_body"] is True
        assert "x-extra" in config["headers"]
        assert "user-agent" in config["headers"]

    def test_direct_failure_has_no_request_config(self, make_client):
        def handler(request):
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        client, _ = make_client(handler)

        response = client.get("/api/proxy", params={"url": "https://example.com"})

        assert response.status_code == 502
        assert "request_config" not in response.json()

    def test_custom_authorization_forwarded_with_url_key(self, make_client):
        """Test a target credential in the headers parameter is sent while the gateway key stays in the URL."""
        client, transport = make_client(PROXY_API_KEY=SECRET)

        client.get(
            "/api/get_proxy",
            params={
                "url": "https://example.com",
                "key": SECRET,
                "headers": json.dumps({"Authorization": "Bearer upstream-token"}),
            },
        )

        (outbound,) = transport.requests
        assert outbound.headers["authorization"] == "Bearer upstream-token"

    def test_unsupported_method(self, make_client):
        client, transport = make_client()

        response = client.get("/api/get_proxy", params={"url": "https://example.com", "method": "TRACE"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "unsupported_method"
        assert body["method"] == "TRACE"
        assert "PATCH" in body["allowed_methods"]
        assert transport.requests == []

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
    def test_invalid_headers(self, make_client, raw):
        """Test headers that are not a JSON object are rejected."""
        client, transport = make_client()

        response = client.get("/api/get_proxy", params={"url": "https://example.com", "headers": raw})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "invalid_headers"
        assert body["headers"] == raw
        assert "example" in body
        assert transport.requests == []

    def test_missing_url_lists_parameters(self, make_client):
        client, _ = make_client()

        response = client.get("/api/get_proxy", params={"method": "POST"})

        assert response.status_code == 400
        body = response.json()
        assert body["reason"] == "missing_url"
        assert set(body["parameters"]) >= {"url", "method", "headers", "body", "data"}

    def test_post_not_routed(self, make_client):
        """Test only GET and OPTIONS are served by the encoded relay."""
        client, transport = make_client()

        response = client.post("/api/get_proxy", params={"url": "https://example.com"}, content="x")

        assert response.status_code == 405
        assert transport.requests == []


class TestHealth:
    """Health endpoint is public."""

    def test_health(self, make_client):
        client, _ = make_client(PROXY_API_KEY=SECRET)

        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "HTTP Relay Gateway"
        assert body["version"] == "1.0.0"
        assert body["timestamp"]


class TestDiagnose:
    """Network diagnostics endpoint."""

    def test_all_probes_pass(self, make_client):
        def handler(request):
            return httpx.Response(200, text="x" * 300, headers={"Content-Type": "text/html"})

        client, transport = make_client(handler)

        response = client.get("/api/diagnose", params={"url": "https://example.com/status"})

        assert response.status_code == 200
        body = response.json()
        assert body["url"] == "https://example.com/status"
        tests = body["tests"]
        assert tests["url_parsing"] == {
            "status": "success",
            "protocol": "https:",
            "hostname": "example.com",
            "port": "443",
            "pathname": "/status",
        }
        assert tests["head_request"]["status_code"] == 200
        assert tests["get_request"]["response_size"] == 300
        assert tests["get_request"]["response_preview"] == "x" * 200 + "..."
        assert tests["get_request"]["content_type"] == "text/html"
        assert tests["base_host"]["base_url_accessible"] is True
        assert body["analysis"] == ["All probes passed; the network path looks healthy"]
        assert len(transport.requests) == 3

    def test_get_probe_uses_diagnostic_user_agent(self, make_client):
        client, transport = make_client()

        client.get("/api/diagnose", params={"url": "https://example.com"})

        (get_request,) = [r for r in transport.requests if r.method == "GET"]
        assert get_request.headers["user-agent"] == "HTTP-Relay-Diagnostic/1.0"

    def test_failed_probes_analysed(self, make_client):
        """Test failures are reported per probe and summarised."""
        def handler(request):
            raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

        client, _ = make_client(handler)

        response = client.get("/api/diagnose", params={"url": "https://unknown.example.com/x"})

        assert response.status_code == 200
        body = response.json()
        for probe in ("head_request", "get_request", "base_host"):
            assert body["tests"][probe]["status"] == "failed"
            assert "Name or service not known" in body["tests"][probe]["error"]
        assert body["tests"]["base_host"]["base_url_accessible"] is False
        assert len(body["analysis"]) == 3

    def test_ipv6_target(self, make_client):
        """Test the base host probe keeps the brackets of an IPv6 literal."""
        client, transport = make_client()

        response = client.get("/api/diagnose", params={"url": "http://[2606:4700:4700::1111]/"})

        assert response.status_code == 200
        body = response.json()
        assert body["tests"]["base_host"]["base_url_accessible"] is True
        assert body["tests"]["url_parsing"]["hostname"] == "2606:4700:4700::1111"
        assert {r.url.host for r in transport.requests} == {"2606:4700:4700::1111"}

    def test_url_rejected_by_http_client_reported_as_failed_probes(self, make_client):
        """Test a host that passes validation but cannot be encoded fails the probes instead of the endpoint."""
        client, transport = make_client()

        response = client.get("/api/diagnose", params={"url": "http://①②⑦.0.0.1/"})

        assert response.status_code == 200
        body = response.json()
        for probe in ("head_request", "get_request", "base_host"):
            assert body["tests"][probe]["status"] == "failed"
        assert transport.requests == []

    def test_private_target_rejected(self, make_client):
        client, transport = make_client()

        response = client.get("/api/diagnose", params={"url": "http://169.254.169.254/latest/meta-data"})

        assert response.status_code == 400
        assert response.json()["reason"] == "private_or_local_host"
        assert transport.requests == []

    def test_missing_url(self, make_client):
        client, _ = make_client()

        response = client.get("/api/diagnose")

        assert response.status_code == 400
        body = response.json()
        assert body["reason"] == "missing_url"
        assert "timestamp" in body

    def test_key_accepted(self, make_client):
        client, transport = make_client(PROXY_API_KEY=SECRET)

        response = client.get(
            "/api/diagnose",
            params={"url": "https://example.com"},
            headers={"X-API-Key": SECRET},
        )

        assert response.status_code == 200
        assert len(transport.requests) == 3


class TestRoot:
    """Root information endpoint."""

    def test_lists_endpoints(self, make_client):
        client, _ = make_client()

        body = client.get("/").json()

        assert body["service"] == "HTTP Relay Gateway"
        assert body["auth"] == "disabled"
        assert body["endpoints"]["direct_relay"].startswith("/api/proxy")
        assert body["endpoints"]["diagnose"].startswith("/api/diagnose")

    def test_reports_auth_mode(self, make_client):
        client, _ = make_client(PROXY_API_KEY=SECRET)

        assert client.get("/").json()["auth"] == "required"
