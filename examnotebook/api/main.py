"""
ExamNotebook FastAPI Application.

This module provides the REST API layer for the study assistant.
All business logic lives in the key ring and the search index; no LLM or
search logic here.

Endpoints:
- POST /chat - Ask the assistant a question
- GET/POST/DELETE /keys - Manage Gemini API keys
- POST /documents, POST /search, GET /search/* - Search exam documents
- GET /health - Health check
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs import ConfigurationError, validate_configuration
from examnotebook import __version__

from .deps import get_keyring, load_documents, logger
from .routers import chat, keys, search, system


# ============================================================
# APP LIFECYCLE
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        validate_configuration(skip_api_check=True)
    except ConfigurationError as e:
        logger.error("%s", e)
        raise

    ring = get_keyring()
    load_documents()
    if not ring.is_configured:
        logger.warning("No Gemini API key configured; add one with POST /keys")
    logger.info("ExamNotebook API started with %d key(s)", len(ring))
    yield
    ring.transport.close()
    logger.info("ExamNotebook API shutting down.")


# ============================================================
# FASTAPI APP
# ============================================================

app = FastAPI(
    title="ExamNotebook API",
    description="Study assistant: Gemini chat with key rotation and exam document search",
    version=__version__,
    lifespan=lifespan
)

# CORS for the browser front end - configurable via environment
allowed_origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(chat.router)
app.include_router(keys.router)
app.include_router(search.router)


# ============================================================
# RUN DIRECTLY (for development)
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
