"""Common API schemas."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error reason")


class ValidationErrorResponse(BaseModel):
    """Request validation failure."""

    error: str = Field(default="Validation error")
    details: list[dict[str, Any]] = Field(default_factory=list)


class SuccessResponse(BaseModel):
    """Acknowledgement of a state change."""

    success: bool = True
    updated: int | None = Field(default=None, description="Number of records changed")
