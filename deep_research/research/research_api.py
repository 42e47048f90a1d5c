"""
FastAPI endpoints for the research pipeline.

Provides a server-sent-event stream of a research run, a blocking variant,
single-section retry and access to saved research surfaces. The caller is
identified by the X-User-Id header.
"""

import asyncio
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from deep_research.research import events
from deep_research.research.export import render_research_markdown
from deep_research.research.graph.build import run_research
from deep_research.research.graph.config import DEFAULT_CONFIG
from deep_research.research.nodes.sections import retry_research_section
from deep_research.search.providers import provider_status
from deep_research.shared.contracts.research_output import (
    ResearchSection,
    SurfaceState,
)
from deep_research.shared.llm.client import LLMConfigurationError
from deep_research.shared.logging.debug_logger import get_or_create_logger, remove_logger
from deep_research.store.conversation_store import (
    RESEARCH_CREDIT_COST,
    ConversationAccessError,
    ConversationNotFoundError,
    InMemoryConversationStore,
    get_store,
)


logger = logging.getLogger(__name__)

# Create router for research routes
router = APIRouter(prefix="/api/research", tags=["research"])


# =============================================================================
# Request / Response Models
# =============================================================================


class ResearchRequest(BaseModel):
    """Request body for starting a research run."""

    query: str = Field(min_length=1, description="Research question or topic")
    conversation_id: str = Field(min_length=1, description="Conversation to save the result to")

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be blank")
        return v

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "query": "State of solid-state battery commercialization",
                "conversation_id": "5f1c9a4e-2b7d-4c1e-9f0a-8d3e6b2a1c44",
            }
        }


class RunResearchResponse(BaseModel):
    """Response for the blocking research endpoint."""

    session_id: str
    surface_state: SurfaceState
    errors: List[str] = Field(default_factory=list)


class RetrySectionRequest(BaseModel):
    """Request body for regenerating one section of a saved document."""

    conversation_id: str
    surface_id: str
    section_id: str


class RetrySectionResponse(BaseModel):
    """Response for section retry."""

    section: ResearchSection
    surface_state: SurfaceState


class CreateConversationRequest(BaseModel):
    """Request body for creating a conversation."""

    title: str = "New research"


# =============================================================================
# Dependencies
# =============================================================================


def require_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return x_user_id.strip()


def get_research_runtime() -> Dict[str, Any]:
    """
    Per-run dependencies for the pipeline.

    Returns an empty dict, so the pipeline uses DEFAULT_CONFIG, providers
    from the environment and the cached LLM client. Override with
    app.dependency_overrides to inject others.
    """
    return {}


def _owned_conversation(
    store: InMemoryConversationStore, conversation_id: str, user_id: str
) -> Dict[str, Any]:
    try:
        return store.get_owned_conversation(conversation_id, user_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ConversationAccessError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def _require_credits(store: InMemoryConversationStore, user_id: str) -> None:
    credits = store.get_user_credits(user_id)
    if credits < RESEARCH_CREDIT_COST:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=f"Insufficient credits (requires {RESEARCH_CREDIT_COST})",
        )


def _save_surface(
    store: InMemoryConversationStore,
    conversation_id: str,
    user_id: str,
    surface: SurfaceState,
    _log: str,
) -> SurfaceState:
    """Save and charge; a save failure is logged and the unsaved surface returned."""
    try:
        surface_id = store.save_research_surface(conversation_id, user_id, surface)
    except Exception as e:
        logger.error(f"{_log}Save failed: {e}")
        return surface
    logger.info(f"{_log}Saved research: {surface_id}")
    return surface.model_copy(update={"id": surface_id})


def _log_api_timing(session_id: str, endpoint: str, start: float, error: Optional[str] = None) -> None:
    if not DEFAULT_CONFIG.enable_debug_logs:
        return
    debug_logger = get_or_create_logger(session_id, logs_dir=DEFAULT_CONFIG.logs_dir)
    debug_logger.log_api_timing(
        endpoint=endpoint,
        duration_ms=(time.perf_counter() - start) * 1000,
        success=error is None,
        error=error,
    )
    remove_logger(session_id)


# =============================================================================
# Research runs
# =============================================================================


@router.post("/stream")
async def stream_research(
    request: ResearchRequest,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
    runtime: Dict[str, Any] = Depends(get_research_runtime),
) -> StreamingResponse:
    """
    Run a research pipeline and stream progress as server-sent events.

    Events, one per "data: {json}" frame: phase, skeleton, vertical_start,
    vertical_complete, vertical_error, synthesis, section_start,
    section_complete, section_error, then complete (with the saved surface
    state) or error.

    Args:
        request: Query and target conversation
        user_id: Caller identity

    Returns:
        text/event-stream response
    """
    _owned_conversation(store, request.conversation_id, user_id)
    _require_credits(store, user_id)

    session_id = str(uuid.uuid4())
    _log = f"[session={session_id}] [api=research/stream] "
    logger.info(f"{_log}Starting research | user={user_id}, query='{request.query[:80]}'")

    queue: asyncio.Queue = asyncio.Queue()

    async def produce() -> None:
        api_start_time = time.perf_counter()
        error = None
        try:
            result = await run_research(
                request.query,
                session_id=session_id,
                emit=queue.put,
                conversation_id=request.conversation_id,
                user_id=user_id,
                **runtime,
            )
            surface = SurfaceState.model_validate(result["surface_state"])
            surface = _save_surface(store, request.conversation_id, user_id, surface, _log)
            await queue.put(events.complete_event(surface.model_dump()))
        except Exception as e:
            logger.exception(f"{_log}Fatal error: {e}")
            error = str(e) or "Research generation failed"
            await queue.put(events.error_event(error))
        finally:
            _log_api_timing(session_id, "/api/research/stream", api_start_time, error)
            await queue.put(None)

    async def event_stream():
        task = asyncio.create_task(produce())
        finished = False
        try:
            while True:
                event = await queue.get()
                if event is None:
                    finished = True
                    break
                yield events.format_sse(event)
        finally:
            if not finished and not task.done():
                logger.info(f"{_log}Client disconnected, cancelling run")
                task.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/run", response_model=RunResearchResponse)
async def run_research_blocking(
    request: ResearchRequest,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
    runtime: Dict[str, Any] = Depends(get_research_runtime),
) -> RunResearchResponse:
    """
    Run a research pipeline to completion and return the saved surface state.

    Args:
        request: Query and target conversation
        user_id: Caller identity

    Returns:
        Session id, surface state and non-fatal errors collected on the way
    """
    _owned_conversation(store, request.conversation_id, user_id)
    _require_credits(store, user_id)

    api_start_time = time.perf_counter()
    session_id = str(uuid.uuid4())
    _log = f"[session={session_id}] [api=research/run] "

    try:
        result = await run_research(
            request.query,
            session_id=session_id,
            conversation_id=request.conversation_id,
            user_id=user_id,
            **runtime,
        )
    except LLMConfigurationError as e:
        _log_api_timing(session_id, "/api/research/run", api_start_time, str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception(f"{_log}Fatal error: {e}")
        _log_api_timing(session_id, "/api/research/run", api_start_time, str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Research generation failed: {str(e)}",
        )

    surface = SurfaceState.model_validate(result["surface_state"])
    surface = _save_surface(store, request.conversation_id, user_id, surface, _log)
    _log_api_timing(session_id, "/api/research/run", api_start_time)

    return RunResearchResponse(
        session_id=session_id,
        surface_state=surface,
        errors=result.get("errors") or [],
    )


@router.post("/sections/retry", response_model=RetrySectionResponse)
async def retry_section(
    request: RetrySectionRequest,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
    runtime: Dict[str, Any] = Depends(get_research_runtime),
) -> RetrySectionResponse:
    """
    Regenerate one section of a saved research document and store the result.

    Args:
        request: Conversation, surface and section ids
        user_id: Caller identity

    Returns:
        The regenerated section and the updated surface state
    """
    _owned_conversation(store, request.conversation_id, user_id)
    stored = store.get_research_surface(request.conversation_id, user_id, request.surface_id)
    if stored is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Surface {request.surface_id} not found",
        )

    surface = SurfaceState.model_validate(stored)
    try:
        metadata, section = await retry_research_section(
            surface.metadata,
            request.section_id,
            graph_config=runtime.get("config") or DEFAULT_CONFIG,
            client=runtime.get("llm_client"),
        )
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Section {request.section_id} not found",
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    previous = next(s for s in surface.metadata.sections if s.id == request.section_id)
    if section.status == "failed" and previous.status == "completed":
        # A completed section is never overwritten by a failed regeneration
        logger.warning(
            f"[api=research/sections/retry] Retry of {request.section_id} failed, "
            f"keeping stored content: {section.error}"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Section regeneration failed: {section.error}",
        )

    updated = store.replace_research_surface(
        request.conversation_id,
        user_id,
        surface.model_copy(update={"metadata": metadata}).model_dump(),
    )
    return RetrySectionResponse(section=section, surface_state=SurfaceState.model_validate(updated))


# =============================================================================
# Conversations and saved surfaces
# =============================================================================


@router.post("/conversations", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: CreateConversationRequest,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
) -> Dict[str, Any]:
    """Create a conversation owned by the caller."""
    conversation = store.create_conversation(user_id, title=request.title)
    return {
        "id": conversation["id"],
        "title": conversation["title"],
        "created_at": conversation["created_at"],
    }


@router.get("/conversations/{conversation_id}/surfaces")
async def list_surfaces(
    conversation_id: str,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
) -> Dict[str, Any]:
    """Saved research surfaces of a conversation, oldest first."""
    _owned_conversation(store, conversation_id, user_id)
    surfaces = store.list_research_surfaces(conversation_id, user_id)
    return {"conversation_id": conversation_id, "surfaces": surfaces}


@router.get(
    "/conversations/{conversation_id}/surfaces/{surface_id}/markdown",
    response_class=PlainTextResponse,
)
async def export_surface_markdown(
    conversation_id: str,
    surface_id: str,
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
) -> PlainTextResponse:
    """Saved research surface rendered as Markdown."""
    _owned_conversation(store, conversation_id, user_id)
    stored = store.get_research_surface(conversation_id, user_id, surface_id)
    if stored is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Surface {surface_id} not found",
        )
    surface = SurfaceState.model_validate(stored)
    return PlainTextResponse(
        render_research_markdown(surface.metadata), media_type="text/markdown"
    )


@router.get("/credits")
async def get_credits(
    user_id: str = Depends(require_user_id),
    store: InMemoryConversationStore = Depends(get_store),
) -> Dict[str, Any]:
    """Caller's credit balance."""
    return {"user_id": user_id, "credits": store.get_user_credits(user_id)}


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check for the research service."""
    status_by_provider = provider_status(DEFAULT_CONFIG.enable_semantic_scholar)
    return {
        "status": "healthy",
        "service": "research",
        "llm_configured": bool(os.environ.get("GROQ_API_KEY")),
        "providers": [name for name, ready in status_by_provider.items() if ready],
        "provider_status": status_by_provider,
    }
