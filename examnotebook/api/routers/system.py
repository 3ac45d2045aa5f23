"""
System router - health check.

Endpoints:
- GET /health - Health check (always available)
"""

from fastapi import APIRouter

from configs import LLM_TRANSPORT
from examnotebook import __version__

from ..deps import get_documents, get_keyring
from ..schemas import HealthResponse


router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and configuration status."""
    ring = get_keyring()
    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_transport=LLM_TRANSPORT,
        key_count=len(ring),
        fallback_enabled=ring.fallback_enabled,
        document_count=len(get_documents()),
    )
