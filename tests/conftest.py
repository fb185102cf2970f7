"""Shared fixtures for relay gateway tests."""

from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from relay_gateway.api.routes import get_upstream_transport
from relay_gateway.core.config import Settings
from relay_gateway.main import create_app


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every outbound request it handled."""

    def __init__(self, handler: Callable):
        self.requests: List[httpx.Request] = []

        def recording_handler(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="upstream ok", headers={"Content-Type": "text/plain"})


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment's secret and probe defaults."""
    values = {
        "PROXY_API_KEY": None,
        "CONNECTIVITY_PROBE_ENABLED": False,
        "LOG_FORMAT": "text",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_client():
    """Factory building a TestClient whose outbound calls hit a RecordingTransport."""

    def _make_client(
        handler: Optional[Callable] = None,
        **settings_overrides,
    ):
        transport = RecordingTransport(handler or ok_handler)
        app = create_app(make_settings(**settings_overrides))
        app.dependency_overrides[get_upstream_transport] = lambda: transport
        return TestClient(app), transport

    return _make_client
