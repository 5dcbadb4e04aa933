"""Knowledge service API layer: routes, schemas, and middleware."""

from knowledge_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from knowledge_rag.api.routes import router
from knowledge_rag.api.schemas import ApiResponse, HealthResponse

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ApiResponse",
    "HealthResponse",
]
