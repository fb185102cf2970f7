"""
HTTP Relay API Routes
Defines the relay, health and diagnostics endpoints of the gateway
"""
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from relay_gateway import __version__
from relay_gateway.core.config import Settings, get_settings
from relay_gateway.core.diagnostics import NetworkDiagnostics
from relay_gateway.core.exceptions import RelayError, TargetRejectedError
from relay_gateway.core.extraction import (
    DirectRelayExtractor,
    QueryEncodedRelayExtractor,
    RequestExtractor,
)
from relay_gateway.core.logging import get_logger
from relay_gateway.core.proxy import RelayProxyService, target_rejection, utc_timestamp
from relay_gateway.models.api.common import DiagnosticsResponse, ErrorResponse, HealthResponse

logger = get_logger(__name__)

# Create API router
router = APIRouter()

SERVICE_NAME = "HTTP Relay Gateway"

DIRECT_RELAY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
ENCODED_RELAY_METHODS = ["GET", "OPTIONS"]

RELAY_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request or rejected target"},
    401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
    502: {"model": ErrorResponse, "description": "Target could not be reached"},
}

direct_extractor = DirectRelayExtractor()
encoded_extractor = QueryEncodedRelayExtractor()


def get_request_settings(request: Request) -> Settings:
    """
    Dependency injection for settings
    Prefers the settings the application was created with
    """
    return getattr(request.app.state, "settings", None) or get_settings()


async def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """
    Dependency injection for the outbound transport
    Returns None so httpx opens real connections; tests override it
    """
    return None


async def _relay(
    request: Request,
    extractor: RequestExtractor,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport],
) -> Response:
    async with RelayProxyService(settings=settings, transport=transport) as proxy:
        return await proxy.forward(request, extractor)


@router.api_route("/proxy",
                  methods=DIRECT_RELAY_METHODS,
                  summary="Direct Relay",
                  description="Forward the request to ?url= using the inbound method, headers and body",
                  responses=RELAY_ERROR_RESPONSES,
                  tags=["proxy"])
async def direct_relay(
    request: Request,
    settings: Settings = Depends(get_request_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """Relay the inbound call as-is to the target URL"""
    return await _relay(request, direct_extractor, settings, transport)


@router.api_route("/get_proxy",
                  methods=ENCODED_RELAY_METHODS,
                  summary="GET-encoded Relay",
                  description="Execute the method, headers and body encoded in query parameters against ?url=",
                  responses=RELAY_ERROR_RESPONSES,
                  tags=["proxy"])
async def encoded_relay(
    request: Request,
    settings: Settings = Depends(get_request_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """Relay a call whose method, headers and body come from query parameters"""
    return await _relay(request, encoded_extractor, settings, transport)


@router.get("/health",
            summary="Health Check",
            description="Check if the gateway is running",
            response_model=HealthResponse,
            tags=["health"])
async def health_check():
    """Liveness probe with static status"""
    return HealthResponse(
        status="healthy",
        timestamp=utc_timestamp(),
        service=SERVICE_NAME,
        version=__version__,
    )


@router.get("/diagnose",
            summary="Network Diagnostics",
            description="Probe a target URL with HEAD, GET and base host requests",
            response_model=DiagnosticsResponse,
            responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
            tags=["diagnostics"])
async def diagnose(
    request: Request,
    settings: Settings = Depends(get_request_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """Run network diagnostics against ?url="""
    # Reuse the relay's auth and target checks so the probes cannot reach private space.
    proxy = RelayProxyService(settings=settings)
    target_url = request.query_params.get("url")
    try:
        proxy.authenticate(request)
        if not target_url:
            raise TargetRejectedError(
                "Missing url parameter",
                reason="missing_url",
                details="Provide the target address as ?url=<target>",
            )
        verdict = proxy.target_validator.validate(target_url)
        if not verdict.accepted:
            raise target_rejection(verdict, target_url)
    except RelayError as e:
        logger.warning("diagnose_rejected", error_code=e.error_code, target_url=target_url)
        body = e.to_dict()
        body["timestamp"] = utc_timestamp()
        return JSONResponse(status_code=e.status_code, content=body)

    started_at = utc_timestamp()
    report = await NetworkDiagnostics(settings=settings, transport=transport).run(target_url)
    return DiagnosticsResponse(url=target_url, timestamp=started_at, **report)


__all__ = ["router", "get_request_settings", "get_upstream_transport"]
