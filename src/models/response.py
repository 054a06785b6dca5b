"""Response envelope models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """Success envelope shared by every users endpoint.

    Attributes:
        status_code: HTTP status echoed in the body
        data: Endpoint payload
        message: Human-readable summary
        success: Always true for this envelope
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status_code: int = Field(alias="statusCode", ge=100, lt=400)
    data: Any = None
    message: str = ""
    success: bool = True


class ErrorResponse(BaseModel):
    """Error body. Carries only a client-safe message."""

    message: str
