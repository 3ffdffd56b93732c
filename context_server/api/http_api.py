"""
HTTP API adapter for the Model Context server.

Architectural role:
- Expose session, context, and model routes over JSON/HTTP.
- Enforce adapter-level input validation and bearer authentication.
- Resolve stored contexts through `ContextStore` before delegating to
  `ModelAdapter` for model-backed operations.

Endpoint groups:
- `GET /`: service banner (unauthenticated).
- `/api/session`: session CRUD and context listing.
- `/api/context`: context CRUD, merge, summarize.
- `/api/model`: prompt queries and task processing.

Input validation behavior:
- Required identifiers and prompt/task fields are checked here and rejected with
  HTTP 400 and a stable error `code`.
- Unknown session/context identifiers return HTTP 404.

Error handling strategy:
- All handled failures use the envelope `{"error": {"message", "code"}}`.
- Model adapter failures map to HTTP 502 with a per-operation code, or 400
  when the failure was caused by invalid caller-supplied context data.
- Any other exception is logged and returned as 500 `INTERNAL_ERROR`.

Side effects:
- Reads and writes the JSON context database.
- Issues outbound model requests (one per model-backed operation).
"""

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from context_server import __version__
from context_server.api.auth import APIError, authenticate
from context_server.llm import provider_config
from context_server.errors import (
    ContextMergeFailed,
    ContextNotFound,
    ContextProcessingFailed,
    ContextServerError,
    ContextSummarizationFailed,
    InvalidContextData,
    ModelQueryFailed,
    SessionAlreadyExists,
    SessionNotFound,
)
from context_server.llm.service import ModelAdapter
from context_server.storage.context_store import ContextStore
from context_server.utils import utc_now_iso


logger = logging.getLogger(__name__)

app = FastAPI(title="Model Context Protocol Server", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Dependencies
# ============================================================

@lru_cache
def get_store() -> ContextStore:
    store = ContextStore(provider_config.CONTEXT_DB_PATH)
    store.ensure_initialized()
    return store


@lru_cache
def get_adapter() -> ModelAdapter:
    return ModelAdapter.from_env()


# ============================================================
# Error envelope
# ============================================================

ADAPTER_ERROR_CODES = (
    (ContextProcessingFailed, "CONTEXT_PROCESSING_FAILED"),
    (ContextMergeFailed, "CONTEXT_MERGE_FAILED"),
    (ContextSummarizationFailed, "CONTEXT_SUMMARIZATION_FAILED"),
    (ModelQueryFailed, "MODEL_QUERY_FAILED"),
)


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code}},
    )


@app.exception_handler(APIError)
async def handle_api_error(request: Request, exc: APIError):
    return error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(ContextServerError)
async def handle_context_server_error(request: Request, exc: ContextServerError):
    if isinstance(exc, SessionNotFound):
        return error_response(404, str(exc), "SESSION_NOT_FOUND")
    if isinstance(exc, ContextNotFound):
        return error_response(404, str(exc), "CONTEXT_NOT_FOUND")
    if isinstance(exc, SessionAlreadyExists):
        return error_response(409, str(exc), "SESSION_EXISTS")
    if isinstance(exc, InvalidContextData):
        return error_response(400, str(exc), "INVALID_CONTEXT_DATA")

    for error_type, code in ADAPTER_ERROR_CODES:
        if isinstance(exc, error_type):
            status_code = 400 if isinstance(exc.__cause__, InvalidContextData) else 502
            return error_response(status_code, str(exc), code)

    logger.error("Unhandled server error on %s: %s", request.url.path, exc)
    return error_response(500, str(exc), "INTERNAL_ERROR")


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s", request.url.path, exc_info=exc)
    return error_response(500, str(exc), "INTERNAL_ERROR")


# ============================================================
# Request Schemas
# ============================================================

class SessionCreateRequest(BaseModel):
    sessionId: str | None = None
    metadata: dict[str, Any] | None = None


class ContextCreateRequest(BaseModel):
    sessionId: str | None = None
    data: Any = None


class ContextMergeRequest(BaseModel):
    contextIds: list[str] | None = None
    options: dict[str, Any] | None = None
    sessionId: str | None = None


class ContextSummarizeRequest(BaseModel):
    options: dict[str, Any] | None = None
    sessionId: str | None = None


class ModelQueryRequest(BaseModel):
    prompt: str | None = None
    contextId: str | None = None
    options: dict[str, Any] | None = None
    sessionId: str | None = None


class ModelProcessRequest(BaseModel):
    contextId: str | None = None
    task: str | None = None
    options: dict[str, Any] | None = None
    sessionId: str | None = None


# ============================================================
# Root
# ============================================================

@app.get("/")
def root():
    return {
        "name": "Model Context Protocol Server",
        "version": __version__,
        "status": "running",
    }


# ============================================================
# Sessions
# ============================================================

session_router = APIRouter(prefix="/api/session", dependencies=[Depends(authenticate)])


@session_router.post("", status_code=201)
def create_session(
    body: SessionCreateRequest = Body(),
    store: ContextStore = Depends(get_store),
):
    return store.create_session(body.sessionId, body.metadata)


@session_router.get("/{session_id}")
def get_session(session_id: str, store: ContextStore = Depends(get_store)):
    return store.get_session(session_id)


@session_router.patch("/{session_id}")
def update_session(
    session_id: str,
    updates: dict[str, Any] = Body(),
    store: ContextStore = Depends(get_store),
):
    return store.update_session(session_id, updates)


@session_router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, store: ContextStore = Depends(get_store)):
    store.delete_session(session_id)
    return Response(status_code=204)


@session_router.get("/{session_id}/contexts")
def get_session_contexts(session_id: str, store: ContextStore = Depends(get_store)):
    return store.get_session_contexts(session_id)


# ============================================================
# Contexts
# ============================================================

context_router = APIRouter(prefix="/api/context", dependencies=[Depends(authenticate)])


@context_router.post("", status_code=201)
def create_context(
    body: ContextCreateRequest = Body(),
    store: ContextStore = Depends(get_store),
):
    if not body.sessionId:
        raise APIError(400, "sessionId is required", "MISSING_SESSION_ID")
    return store.create_context(body.sessionId, body.data)


@context_router.post("/merge")
def merge_contexts(
    body: ContextMergeRequest = Body(),
    store: ContextStore = Depends(get_store),
    adapter: ModelAdapter = Depends(get_adapter),
):
    if not body.contextIds:
        raise APIError(
            400,
            "contextIds array is required and must not be empty",
            "INVALID_CONTEXT_IDS",
        )

    contexts = [store.get_context(context_id) for context_id in body.contextIds]
    merged = adapter.merge_contexts(contexts, body.options or {})

    if body.sessionId:
        new_context = store.create_context(body.sessionId, merged["data"])
        return JSONResponse(status_code=201, content=new_context)

    return merged


@context_router.get("/{context_id}")
def get_context(context_id: str, store: ContextStore = Depends(get_store)):
    return store.get_context(context_id)


@context_router.patch("/{context_id}")
def update_context(
    context_id: str,
    updates: dict[str, Any] = Body(),
    store: ContextStore = Depends(get_store),
):
    return store.update_context(context_id, updates)


@context_router.delete("/{context_id}", status_code=204)
def delete_context(context_id: str, store: ContextStore = Depends(get_store)):
    store.delete_context(context_id)
    return Response(status_code=204)


@context_router.post("/{context_id}/summarize")
def summarize_context(
    context_id: str,
    body: ContextSummarizeRequest = Body(),
    store: ContextStore = Depends(get_store),
    adapter: ModelAdapter = Depends(get_adapter),
):
    context = store.get_context(context_id)
    summarized = adapter.summarize_context(context, body.options or {})

    if body.sessionId:
        new_context = store.create_context(body.sessionId, summarized["data"])
        return JSONResponse(status_code=201, content=new_context)

    return summarized


# ============================================================
# Model
# ============================================================

model_router = APIRouter(prefix="/api/model", dependencies=[Depends(authenticate)])


@model_router.post("/query")
def query_model(
    body: ModelQueryRequest = Body(),
    store: ContextStore = Depends(get_store),
    adapter: ModelAdapter = Depends(get_adapter),
):
    if not body.prompt:
        raise APIError(400, "prompt is required", "MISSING_PROMPT")

    context = {}
    if body.contextId:
        context = store.get_context(body.contextId).get("data") or {}

    response = adapter.query(body.prompt, context, body.options or {})

    if body.sessionId:
        new_context = store.create_context(
            body.sessionId,
            {
                "prompt": body.prompt,
                "response": response["completion"],
                "timestamp": utc_now_iso(),
            },
        )
        return {"completion": response["completion"], "context": new_context}

    return response


@model_router.post("/process")
def process_context(
    body: ModelProcessRequest = Body(),
    store: ContextStore = Depends(get_store),
    adapter: ModelAdapter = Depends(get_adapter),
):
    if not body.contextId:
        raise APIError(400, "contextId is required", "MISSING_CONTEXT_ID")
    if not body.task:
        raise APIError(400, "task is required", "MISSING_TASK")

    context = store.get_context(body.contextId)
    processed = adapter.process_context(context, body.task, body.options or {})

    if body.sessionId:
        new_context = store.create_context(body.sessionId, processed["data"])
        return {"result": processed["result"], "context": new_context}

    return processed


app.include_router(session_router)
app.include_router(context_router)
app.include_router(model_router)
