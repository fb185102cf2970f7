"""
HTTP Relay Forwarding Service
Authenticates, validates and forwards one inbound call to its target, then relays the result
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from relay_gateway.auth.api_key import AUTH_METHODS, ApiKeyValidator
from relay_gateway.core.config import Settings, get_settings
from relay_gateway.core.error_classifier import classify
from relay_gateway.core.exceptions import (
    RelayError,
    TargetRejectedError,
    UnauthorizedError,
    UpstreamError,
    UpstreamReadError,
)
from relay_gateway.core.extraction import RequestExtractor
from relay_gateway.core.headers import HeaderTransformer
from relay_gateway.core.logging import get_logger
from relay_gateway.core.target_validator import ALLOWED_PORTS, TargetValidator, base_url
from relay_gateway.models.forwarding import (
    AuthOutcome,
    ForwardFailure,
    ForwardOutcome,
    ForwardRequest,
    ForwardSuccess,
    TargetRejection,
    TargetVerdict,
)

logger = get_logger(__name__)

TROUBLESHOOTING = {
    "check_url": "Confirm the URL is well formed and publicly reachable",
    "test_connection": "Open the URL directly in a browser",
    "check_status": "Check whether the target site is up",
    "network_diagnostics": "Use /api/diagnose, ping or traceroute to inspect the network path",
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def remaining(deadline: float) -> float:
    """Seconds left until a perf_counter deadline, never negative."""
    return max(deadline - time.perf_counter(), 0.0)


class RelayProxyService:
    """Service for relaying calls to arbitrary public targets"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.http_client: Optional[httpx.AsyncClient] = None

        self.auth_validator = ApiKeyValidator(self.settings.PROXY_API_KEY)
        self.target_validator = TargetValidator()
        self.header_transformer = HeaderTransformer(
            user_agent=self.settings.GATEWAY_USER_AGENT,
            auth_mode=self.auth_validator.auth_mode,
        )

    async def __aenter__(self):
        """Async context manager entry - initialize HTTP client"""
        client_options: Dict[str, Any] = {
            "timeout": httpx.Timeout(self.settings.FORWARD_TIMEOUT),
            "follow_redirects": self.settings.FOLLOW_REDIRECTS,
            "max_redirects": self.settings.MAX_REDIRECTS,
        }
        if self.transport is not None:
            client_options["transport"] = self.transport
        else:
            client_options["http2"] = self.settings.ENABLE_HTTP2

        self.http_client = httpx.AsyncClient(**client_options)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - cleanup HTTP client"""
        if self.http_client:
            await self.http_client.aclose()

    async def forward(self, request: Request, extractor: RequestExtractor) -> Response:
        """
        Run the full relay pipeline for one inbound request.

        Authenticate, answer CORS preflights, extract and validate the target,
        execute the outbound call and assemble the relayed response. Every
        rejection is turned into a JSON error response here.

        Args:
            request: Inbound request
            extractor: Strategy that reads the outbound call from the request

        Returns:
            Relayed upstream response, or a JSON error response
        """
        if not self.http_client:
            raise RuntimeError("Relay service not initialized. Use async context manager.")

        started = time.perf_counter()
        method = request.method.upper()

        try:
            auth = self.authenticate(request)

            if method == "OPTIONS":
                return Response(status_code=200, headers=dict(self.header_transformer.build_preflight_headers()))

            forward_request = await extractor.extract(request)
            self.validate_target(forward_request, extractor)

            outbound_headers = self.header_transformer.build_outbound_headers(
                forward_request.headers,
                auth,
                extra_headers=forward_request.extra_headers,
                body=forward_request.outbound_body,
            )

            logger.info(
                "relay_request_received",
                variant=extractor.name,
                method=forward_request.method,
                target_url=forward_request.target_url,
                auth_mode=self.auth_validator.auth_mode,
                auth_channel=auth.matched_via.value,
                forwarded_headers=sorted(outbound_headers.keys()),
            )

            outcome = await self.execute(
                forward_request,
                outbound_headers,
                started,
                variant_headers=extractor.response_headers(forward_request),
            )

            if isinstance(outcome, ForwardFailure):
                raise await self._upstream_error(
                    outcome,
                    forward_request,
                    extractor.failure_context(forward_request, outbound_headers),
                )

            logger.info(
                "relay_request_forwarded",
                method=forward_request.method,
                target_url=forward_request.target_url,
                status_code=outcome.status_code,
                duration_ms=outcome.duration_ms,
            )
            return self._relayed_response(outcome)

        except RelayError as e:
            return self._error_response(e, started)
        except Exception as e:
            duration = elapsed_ms(started)
            logger.error(
                "relay_unexpected_error",
                method=method,
                duration_ms=duration,
                error=str(e),
                exc_info=True,
            )
            return self._error_response(
                RelayError("Internal relay error", details=str(e) or type(e).__name__),
                started,
            )

    def authenticate(self, request: Request) -> AuthOutcome:
        """
        Check the inbound credentials.

        Raises:
            UnauthorizedError: If a secret is configured and no channel matched
        """
        auth = self.auth_validator.validate(request.query_params, request.headers)
        if not auth.authorized:
            logger.warning("relay_auth_rejected", method=request.method, path=request.url.path)
            raise UnauthorizedError("Unauthorized", auth_methods=AUTH_METHODS)
        return auth

    def validate_target(self, forward_request: ForwardRequest, extractor: RequestExtractor) -> TargetVerdict:
        """
        Vet the target URL of the outbound call.

        Raises:
            TargetRejectedError: If the URL is missing or fails a safety check
        """
        target_url = forward_request.target_url
        if not target_url:
            context: Dict[str, Any] = {"example": extractor.usage_example}
            parameters = getattr(extractor, "parameters", None)
            if parameters:
                context["parameters"] = parameters
            raise TargetRejectedError(
                "Missing target URL parameter",
                reason="missing_url",
                details="Provide the target address as ?url=<target>",
                context=context,
            )

        verdict = self.target_validator.validate(target_url)
        if not verdict.accepted:
            logger.warning(
                "relay_target_rejected",
                target_url=target_url,
                reason=verdict.reason.value,
            )
            raise target_rejection(verdict, target_url)
        return verdict

    async def execute(
        self,
        forward_request: ForwardRequest,
        outbound_headers: httpx.Headers,
        started: float,
        variant_headers: Optional[List[Tuple[str, str]]] = None,
    ) -> ForwardOutcome:
        """
        Issue the outbound call under the relay deadline.

        One deadline, measured from pipeline entry, covers both the call and
        the body read. Transport failures are classified and returned as
        ForwardFailure. A response whose body cannot be read in time raises
        UpstreamReadError.

        Args:
            forward_request: Outbound call description
            outbound_headers: Headers prepared for the target
            started: perf_counter value at pipeline entry
            variant_headers: Gateway headers added by the relay variant

        Returns:
            ForwardSuccess or ForwardFailure
        """
        deadline = started + self.settings.FORWARD_TIMEOUT

        try:
            outbound = self.http_client.build_request(
                method=forward_request.method,
                url=forward_request.target_url,
                headers=outbound_headers,
                content=forward_request.outbound_body,
            )
        except httpx.InvalidURL as e:
            raise target_rejection(
                TargetVerdict(accepted=False, reason=TargetRejection.BAD_URL),
                forward_request.target_url,
            ) from e

        try:
            response = await asyncio.wait_for(
                self.http_client.send(outbound, stream=True),
                timeout=remaining(deadline),
            )
        except (httpx.HTTPError, asyncio.TimeoutError, OSError) as e:
            classification = classify(e)
            duration = elapsed_ms(started)
            logger.error(
                "relay_upstream_failed",
                method=forward_request.method,
                target_url=forward_request.target_url,
                kind=classification.kind.value,
                error=str(e) or type(e).__name__,
                duration_ms=duration,
            )
            return ForwardFailure(
                kind=classification.kind,
                message=classification.message,
                details=classification.details,
                suggestions=classification.suggestions,
                duration_ms=duration,
            )

        try:
            await asyncio.wait_for(response.aread(), timeout=remaining(deadline))
            body_text = response.text
        except asyncio.TimeoutError as e:
            raise self._read_failure(
                response,
                forward_request,
                f"Reading the response body exceeded the {self.settings.FORWARD_TIMEOUT:g}s deadline",
            ) from e
        except (httpx.HTTPError, OSError, LookupError) as e:
            raise self._read_failure(response, forward_request, str(e) or type(e).__name__) from e
        finally:
            await response.aclose()

        duration = elapsed_ms(started)
        return ForwardSuccess(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=self.header_transformer.build_response_headers(
                response.headers.multi_items(), duration, variant_headers
            ),
            body_text=body_text,
            duration_ms=duration,
        )

    async def connectivity_probe(self, target_url: str) -> str:
        """
        Probe the base host of a failed target once.

        Returns:
            Human readable probe summary
        """
        if not self.settings.CONNECTIVITY_PROBE_ENABLED:
            return "not tested"

        try:
            response = await asyncio.wait_for(
                self.http_client.head(
                    base_url(target_url),
                    headers={"User-Agent": self.settings.GATEWAY_USER_AGENT},
                    timeout=self.settings.CONNECTIVITY_PROBE_TIMEOUT,
                ),
                timeout=self.settings.CONNECTIVITY_PROBE_TIMEOUT,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError) as e:
            return f"base connectivity test failed: {str(e) or type(e).__name__}"
        return f"base connectivity test: {response.status_code}"

    async def _upstream_error(
        self,
        failure: ForwardFailure,
        forward_request: ForwardRequest,
        variant_context: Optional[Dict[str, Any]] = None,
    ) -> UpstreamError:
        connectivity = await self.connectivity_probe(forward_request.target_url)
        context = {
            "kind": failure.kind.value,
            "target_url": forward_request.target_url,
            "method": forward_request.method,
            "connectivity_test": connectivity,
            "troubleshooting": TROUBLESHOOTING,
        }
        context.update(variant_context or {})
        return UpstreamError(
            failure.message,
            error_code=failure.kind.value,
            details=failure.details,
            suggestions=failure.suggestions,
            context=context,
        )

    def _read_failure(
        self,
        response: httpx.Response,
        forward_request: ForwardRequest,
        details: str,
    ) -> UpstreamReadError:
        logger.error(
            "relay_upstream_read_failed",
            target_url=forward_request.target_url,
            status_code=response.status_code,
            error=details,
        )
        return UpstreamReadError(
            "Failed to read upstream response",
            details=details,
            context={"status": response.status_code},
        )

    def _relayed_response(self, outcome: ForwardSuccess) -> Response:
        response = Response(content=outcome.body_text, status_code=outcome.status_code)
        for name, value in outcome.headers:
            response.headers.append(name, value)
        return response

    def _error_response(self, error: RelayError, started: float) -> JSONResponse:
        duration = elapsed_ms(started)
        body = error.to_dict()
        body["duration"] = f"{duration}ms"
        body["duration_ms"] = duration
        body["timestamp"] = utc_timestamp()
        return JSONResponse(
            status_code=error.status_code,
            content=body,
            headers={
                "Access-Control-Allow-Origin": "*",
                "X-Proxy-Status": "error",
                "X-Proxy-Auth": self.auth_validator.auth_mode,
            },
        )


REJECTION_TEMPLATES: Dict[TargetRejection, Tuple[str, str]] = {
    TargetRejection.BAD_URL: (
        "Invalid URL format",
        "Provide a valid HTTP or HTTPS URL",
    ),
    TargetRejection.UNSUPPORTED_SCHEME: (
        "Unsupported protocol",
        "Only HTTP and HTTPS are supported",
    ),
    TargetRejection.PRIVATE_OR_LOCAL_HOST: (
        "Unsupported URL",
        "Local addresses, private IP addresses and intranet hosts cannot be reached "
        "through this gateway. Use a publicly reachable URL.",
    ),
    TargetRejection.DISALLOWED_PORT: (
        "Unsupported port",
        "Only standard HTTP ports ({}) are supported".format(", ".join(str(p) for p in sorted(ALLOWED_PORTS))),
    ),
}


def target_rejection(verdict: TargetVerdict, target_url: str) -> TargetRejectedError:
    """Build the 400 error for a rejected target."""
    message, details = REJECTION_TEMPLATES[verdict.reason]
    context: Dict[str, Any] = {}
    if verdict.reason is TargetRejection.BAD_URL:
        context["provided_url"] = target_url
    elif verdict.reason is TargetRejection.UNSUPPORTED_SCHEME:
        context["protocol"] = f"{verdict.scheme}:"
    elif verdict.reason is TargetRejection.PRIVATE_OR_LOCAL_HOST:
        context["hostname"] = verdict.hostname
        context["suggestion"] = "Try a public API such as https://jsonplaceholder.typicode.com or https://httpbin.org"
    elif verdict.reason is TargetRejection.DISALLOWED_PORT:
        context["port"] = verdict.port
    return TargetRejectedError(message, reason=verdict.reason.value, details=details, context=context)


__all__: List[str] = ["RelayProxyService", "target_rejection", "REJECTION_TEMPLATES"]
