"""Error response body shared by every endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error kind", examples=["not_found"])
    message: str = Field(..., description="Human-readable message", examples=["File not found"])
    details: dict[str, Any] = Field(default_factory=dict, description="Structured context")
