"""FastAPI routes for the knowledge service.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``main._build_all``) through ``Depends`` using the ``Annotated`` pattern.

# Endpoint                                  Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/rag/query_rag_tag_list            GET     Registered tags, in order
# /api/v1/rag/stats                         GET     Chunk counts per tag
# /api/v1/rag/file/upload                   POST    Ingest uploaded files under a tag
# /api/v1/rag/analyze_git_repository        POST    Clone, ingest and clean up a repo
# /api/v1/{provider}/generate               GET     Plain completion
# /api/v1/{provider}/generate_stream        GET     Plain completion as SSE
# /api/v1/{provider}/generate_rag           GET     Completion over top-k tag chunks
# /api/v1/{provider}/generate_stream_rag    GET     RAG completion as SSE
# /api/v1/health                            GET     Component availability
"""

from __future__ import annotations

import json
from typing import Annotated, Any, AsyncIterator

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from knowledge_rag import __version__
from knowledge_rag.api.schemas import ApiResponse, HealthResponse
from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.rag import SourceHandle
from knowledge_rag.models.repository import RepositoryCredentials
from knowledge_rag.services.generation_service import GenerationService
from knowledge_rag.services.ingestion.ingestion_service import IngestionService
from knowledge_rag.services.repository.analysis_service import RepositoryAnalysisService
from knowledge_rag.services.tag_registry import TagRegistry
from knowledge_rag.utils.errors import KnowledgeBaseError
from knowledge_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB increments so oversized files are rejected
# without buffering the whole payload.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_tag_registry(request: Request) -> TagRegistry:
    return request.app.state.tag_registry


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_analysis_service(request: Request) -> RepositoryAnalysisService:
    return request.app.state.analysis_service


def _get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation_service


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


SettingsDep = Annotated[Settings, Depends(_get_settings)]
TagRegistryDep = Annotated[TagRegistry, Depends(_get_tag_registry)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
AnalysisDep = Annotated[RepositoryAnalysisService, Depends(_get_analysis_service)]
GenerationDep = Annotated[GenerationService, Depends(_get_generation_service)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]


# ---------------------------------------------------------------------------
# Knowledge base
# ---------------------------------------------------------------------------


@router.get("/rag/query_rag_tag_list", response_model=ApiResponse, summary="List knowledge tags")
async def query_rag_tag_list(registry: TagRegistryDep) -> ApiResponse:
    tags = await registry.list_tags()
    return ApiResponse.success(tags)


@router.get("/rag/stats", response_model=ApiResponse, summary="Chunk counts per knowledge tag")
async def corpus_stats(vector_store: VectorStoreDep) -> ApiResponse:
    stats = await vector_store.get_stats()
    return ApiResponse.success(stats.model_dump())


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if max_bytes and total_size > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: {file.filename} exceeds {max_bytes} bytes.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/rag/file/upload", response_model=ApiResponse, summary="Ingest uploaded files")
async def upload_files(
    ingestion: IngestionDep,
    settings: SettingsDep,
    rag_tag: Annotated[str, Form(alias="ragTag")],
    files: Annotated[list[UploadFile], File(alias="file")],
) -> ApiResponse:
    """Extract, split and index every uploaded file under ``ragTag``.

    Per-file failures are reported in ``data.failures``; the request only
    fails as a whole when the tag is invalid or storage is unreachable.
    """
    handles = []
    for upload in files:
        content = await _read_upload(upload, settings.max_upload_bytes)
        handles.append(SourceHandle.from_bytes(upload.filename or "upload", content))

    _logger.info("upload_received", tag=rag_tag, files=len(handles))
    result = await ingestion.ingest(rag_tag, handles)
    return ApiResponse.success(result.model_dump(mode="json"))


@router.post(
    "/rag/analyze_git_repository",
    response_model=ApiResponse,
    summary="Clone a Git repository and ingest its files",
)
async def analyze_git_repository(
    analysis: AnalysisDep,
    repo_url: Annotated[str, Form(alias="repoUrl")],
    user_name: Annotated[str, Form(alias="userName")] = "",
    token: Annotated[str, Form()] = "",
    rag_tag: Annotated[str | None, Form(alias="ragTag")] = None,
) -> ApiResponse:
    credentials = RepositoryCredentials(username=user_name, token=token)
    result = await analysis.analyze(repo_url, credentials=credentials, tag=rag_tag)
    return ApiResponse.success(result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _sse_event(payload: dict[str, Any], event: str | None = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _sse_stream(fragments: AsyncIterator[str]) -> AsyncIterator[str]:
    """Frame model fragments as server-sent events.

    Errors raised after the response has started cannot change the HTTP
    status, so they are sent as a final ``error`` event.  When the client
    disconnects the iterator is closed, which closes the upstream stream.
    """
    try:
        async for fragment in fragments:
            yield _sse_event({"content": fragment})
        yield _sse_event({"done": True}, event="done")
    except KnowledgeBaseError as exc:
        _logger.error("stream_failed", error_type=type(exc).__name__, message=exc.message)
        yield _sse_event({"message": exc.message, "type": type(exc).__name__}, event="error")
    finally:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()


def _streaming_response(fragments: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        _sse_stream(fragments),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{provider}/generate", response_model=ApiResponse, summary="Plain completion")
async def generate(
    provider: str,
    generation: GenerationDep,
    model: Annotated[str, Query()],
    message: Annotated[str, Query()],
) -> ApiResponse:
    text = await generation.generate(provider, model, message)
    return ApiResponse.success(text)


@router.get("/{provider}/generate_stream", summary="Plain completion as server-sent events")
async def generate_stream(
    provider: str,
    generation: GenerationDep,
    model: Annotated[str, Query()],
    message: Annotated[str, Query()],
) -> StreamingResponse:
    return _streaming_response(generation.stream(provider, model, message))


@router.get("/{provider}/generate_rag", response_model=ApiResponse, summary="RAG completion")
async def generate_rag(
    provider: str,
    generation: GenerationDep,
    model: Annotated[str, Query()],
    rag_tag: Annotated[str, Query(alias="ragTag")],
    message: Annotated[str, Query()],
) -> ApiResponse:
    text = await generation.generate_rag(provider, model, rag_tag, message)
    return ApiResponse.success(text)


@router.get("/{provider}/generate_stream_rag", summary="RAG completion as server-sent events")
async def generate_stream_rag(
    provider: str,
    generation: GenerationDep,
    model: Annotated[str, Query()],
    rag_tag: Annotated[str, Query(alias="ragTag")],
    message: Annotated[str, Query()],
) -> StreamingResponse:
    # Retrieval runs before the response starts so its errors keep their status.
    fragments = await generation.stream_rag(provider, model, rag_tag, message)
    return _streaming_response(fragments)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Component availability")
async def health(request: Request, vector_store: VectorStoreDep, registry: TagRegistryDep) -> HealthResponse:
    generation: GenerationService = request.app.state.generation_service
    components: dict[str, Any] = {
        "vector_store": {
            "name": vector_store.get_provider_name(),
            "available": vector_store.is_available(),
        },
        "tag_store": {"name": registry.backend_name},
        "llm": {
            name: generation.get_provider(name).is_available() for name in generation.provider_names
        },
    }
    healthy = components["vector_store"]["available"]
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        components=components,
    )
