"""Response envelopes shared by every endpoint."""

from typing import Any

from pydantic import Field, model_validator

from accounts.models.user import CamelModel


class ApiResponse(CamelModel):
    """Success envelope.

    Attributes:
        status_code: HTTP status of the response
        data: Payload (user object, token pair, or empty dict)
        message: Human-readable summary
        success: Derived from status_code (< 400)
    """

    status_code: int = Field(ge=100, le=599)
    data: Any = None
    message: str = "Success"
    success: bool = True

    @model_validator(mode="after")
    def derive_success(self) -> "ApiResponse":
        """Keep success consistent with the status code."""
        self.success = self.status_code < 400
        return self


class ApiErrorResponse(CamelModel):
    """Error envelope produced by the exception handlers."""

    status_code: int = Field(ge=400, le=599)
    message: str
    success: bool = False
