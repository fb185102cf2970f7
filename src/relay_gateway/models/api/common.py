"""
Common API Models

Pydantic models for the non-relay endpoints.
Relay endpoints pass the upstream response through and do not use a model.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(default=None, description="Error code for programmatic handling")
    details: Optional[Any] = Field(default=None, description="Additional error details")
    timestamp: str = Field(..., description="Time the error was produced")


class HealthResponse(BaseModel):
    """Health check response format."""
    status: str = Field(..., description="Service health status")
    timestamp: str = Field(..., description="Health check timestamp")
    service: str = Field(..., description="Service name")
    version: Optional[str] = Field(default=None, description="Service version")


class DiagnosticsResponse(BaseModel):
    """Network diagnostics report for one target URL."""
    url: str = Field(..., description="Diagnosed target URL")
    timestamp: str = Field(..., description="Time the diagnostics started")
    tests: Dict[str, Dict[str, Any]] = Field(..., description="Per-probe results")
    analysis: List[str] = Field(default_factory=list, description="Findings derived from the probes")


__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "DiagnosticsResponse",
]
