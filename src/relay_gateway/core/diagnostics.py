"""
Network diagnostics for a target URL.

Runs three independent probes against a target (HEAD, GET and a HEAD to the
bare host) and reports timing or errors for each. The probes never feed the
forwarding decision; they help a caller understand why a relay call failed.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from relay_gateway.core.config import Settings, get_settings
from relay_gateway.core.logging import get_logger
from relay_gateway.core.target_validator import base_url

logger = get_logger(__name__)

PREVIEW_LENGTH = 200

# InvalidURL is raised while building the request and is not an HTTPError.
PROBE_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class NetworkDiagnostics:
    """Issues diagnostic probes against a target URL."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    async def run(self, target_url: str) -> Dict[str, Any]:
        """
        Run every probe against a target URL.

        Args:
            target_url: Absolute URL that already passed target validation

        Returns:
            Dictionary with url_parsing details, per-probe results and an analysis list
        """
        parts = urlsplit(target_url)
        base = base_url(target_url)

        client_options: Dict[str, Any] = {"follow_redirects": self.settings.FOLLOW_REDIRECTS}
        if self.transport is not None:
            client_options["transport"] = self.transport

        async with httpx.AsyncClient(**client_options) as client:
            head_result, get_result, base_result = await asyncio.gather(
                self._head_probe(client, target_url),
                self._get_probe(client, target_url),
                self._base_host_probe(client, base),
            )

        tests = {
            "url_parsing": {
                "status": "success",
                "protocol": f"{parts.scheme}:",
                "hostname": parts.hostname,
                "port": str(parts.port or (443 if parts.scheme == "https" else 80)),
                "pathname": parts.path or "/",
            },
            "head_request": head_result,
            "get_request": get_result,
            "base_host": base_result,
        }

        analysis = analyze(tests)
        logger.info("diagnostics_completed", target_url=target_url, analysis=analysis)
        return {"tests": tests, "analysis": analysis}

    async def _head_probe(self, client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            response = await client.head(url, timeout=self.settings.DIAGNOSE_HEAD_TIMEOUT)
        except PROBE_ERRORS as e:
            return _failed(e)
        return {
            "status": "success",
            "status_code": response.status_code,
            "duration": _duration(started),
            "headers": dict(response.headers),
        }

    async def _get_probe(self, client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            response = await client.get(
                url,
                headers={"User-Agent": self.settings.DIAGNOSTIC_USER_AGENT},
                timeout=self.settings.DIAGNOSE_GET_TIMEOUT,
            )
            text = response.text
        except PROBE_ERRORS as e:
            return _failed(e)

        preview = text[:PREVIEW_LENGTH] + ("..." if len(text) > PREVIEW_LENGTH else "")
        return {
            "status": "success",
            "status_code": response.status_code,
            "duration": _duration(started),
            "response_size": len(text),
            "content_type": response.headers.get("content-type"),
            "response_preview": preview,
        }

    async def _base_host_probe(self, client: httpx.AsyncClient, base_url: str) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            await client.head(base_url, timeout=self.settings.DIAGNOSE_BASE_TIMEOUT)
        except PROBE_ERRORS as e:
            result = _failed(e)
            result["base_url_accessible"] = False
            return result
        return {
            "status": "success",
            "duration": _duration(started),
            "base_url_accessible": True,
        }


def analyze(tests: Dict[str, Dict[str, Any]]) -> List[str]:
    """Summarise probe results into human readable findings."""
    analysis = []
    if tests["head_request"]["status"] == "failed":
        analysis.append("Basic connection failed; the network may be down or the server unreachable")
    if tests["get_request"]["status"] == "failed":
        analysis.append("GET request failed; the server may be rejecting requests or timing out")
    if tests["base_host"]["status"] == "failed":
        analysis.append("The base host is not reachable; DNS resolution may be failing")
    if not analysis:
        analysis.append("All probes passed; the network path looks healthy")
    return analysis


def _failed(error: Exception) -> Dict[str, Any]:
    return {"status": "failed", "error": str(error) or type(error).__name__}


def _duration(started: float) -> str:
    return f"{int((time.perf_counter() - started) * 1000)}ms"
