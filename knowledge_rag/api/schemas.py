"""Pydantic response schemas for the knowledge service API.

Every non-streaming endpoint answers with the same envelope:

    {"code": "0000", "info": "success", "data": ...}

``code`` is ``"0000"`` on success and one of the codes in
:data:`ERROR_CODES` on failure, in which case ``data`` is ``null``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

SUCCESS_CODE = "0000"
SUCCESS_INFO = "success"

# Error class name -> (HTTP status, envelope code)
ERROR_CODES: dict[str, tuple[int, str]] = {
    "InvalidArgumentError": (400, "0001"),
    "ExtractionFailedError": (422, "0002"),
    "UnsupportedFormatError": (422, "0002"),
    "CorruptInputError": (422, "0002"),
    "StorageUnavailableError": (503, "0003"),
    "AuthenticationFailedError": (401, "0004"),
    "RepositoryNotFoundError": (404, "0005"),
    "NetworkError": (502, "0006"),
    "LLMError": (502, "0007"),
    "ConfigurationError": (500, "0008"),
    "RAGError": (500, "0009"),
}
UNKNOWN_ERROR = (500, "0099")


class ApiResponse(BaseModel):
    """Response envelope shared by every JSON endpoint."""

    code: str = Field(default=SUCCESS_CODE, description='"0000" on success.')
    info: str = Field(default=SUCCESS_INFO, description="Human-readable outcome.")
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> ApiResponse:
        return cls(data=data)


class HealthResponse(BaseModel):
    """Health check response with per-component availability."""

    status: str = Field(description='"healthy" or "degraded".')
    version: str
    components: dict[str, Any] = Field(default_factory=dict)
