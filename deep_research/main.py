"""
FastAPI application entry point.

Assembles the FastAPI app with the research router. Run with
`python -m deep_research.main` or `uvicorn deep_research.main:app`.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deep_research.research.graph.config import DEFAULT_CONFIG
from deep_research.research.research_api import router as research_router
from deep_research.search.providers import build_providers
from deep_research.shared.llm.client import close_cached_client
from deep_research.shared.logging.config import setup_logging


# ============================================================================
# Logging configuration (single source of truth for the service)
# ============================================================================
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-40s | %(message)s"

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

for noisy in ("httpcore", "httpx", "openai"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

# Package loggers switch to JSON lines when logs go to an aggregator
if os.getenv("RESEARCH_JSON_LOGS", "").lower() in ("1", "true", "yes"):
    setup_logging(level=logging.INFO, log_file=os.getenv("RESEARCH_LOG_FILE"))

logger = logging.getLogger("deep_research.main")

STAGES = ["planning", "searching", "synthesis", "sections", "finalize"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective setup on startup; release the LLM client on shutdown."""
    providers = [p.name for p in build_providers()]
    logger.info(
        f"Deep Research starting | llm_configured={bool(os.environ.get('GROQ_API_KEY'))}, "
        f"model={DEFAULT_CONFIG.model}, providers={providers}, "
        f"batches=searches:{DEFAULT_CONFIG.parallel_searches}/sections:{DEFAULT_CONFIG.parallel_sections}, "
        f"debug_logs={DEFAULT_CONFIG.enable_debug_logs}"
    )
    if not providers:
        logger.warning("No search providers configured; research will rely on fallbacks")
    yield
    await close_cached_client()
    logger.info("Deep Research stopped")


app = FastAPI(
    title="Deep Research",
    description="Multi-vertical research documents with verified citations, built with LangGraph",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(research_router)


@app.get("/")
async def root():
    """Service information."""
    return {
        "name": "Deep Research",
        "version": "0.1.0",
        "pipelines": {
            "research": {
                "status": "active",
                "endpoints": "/api/research",
                "stages": STAGES,
            },
        },
    }


@app.get("/health")
async def health():
    """Global health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
