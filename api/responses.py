"""
Standardized API response models.
Documents the error envelope produced by the exception handlers.
"""

from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field
from datetime import datetime


class ErrorDetail(BaseModel):
    """Detailed error information"""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Error message")
    details: Optional[Any] = Field(None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standardized error response"""

    success: bool = Field(False, description="Always false for errors")
    error: ErrorDetail = Field(..., description="Error details")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow, description="Error timestamp"
    )


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: Optional[str] = Field(None, description="Service version")
    database: bool = Field(..., description="Relational store reachable")
    catalog: bool = Field(..., description="Meal catalog reachable")
    jobs: List[Dict[str, Any]] = Field(default_factory=list, description="Scheduled jobs")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow, description="Check timestamp"
    )


def error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI ``responses=`` entries for the listed error statuses"""
    return {code: {"model": ErrorResponse} for code in status_codes}
