"""
Pydantic schemas for the ExamNotebook API.

These models define the request/response structure for all API endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from examnotebook.llm import FailureKind, KeyHealth
from examnotebook.models import AvailableFilters, Document, SearchFilters


# ============================================================
# REQUEST MODELS
# ============================================================

class ChatRequest(BaseModel):
    """Request body for POST /chat."""
    message: str = Field(..., description="User question", min_length=1, max_length=4000)
    context: str = Field(default="", description="Extra context text", max_length=20000)
    document_position: Optional[int] = Field(
        default=None,
        ge=0,
        description="Corpus position of the document the user is looking at"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Tóm tắt đề thi giữa kỳ toán cao cấp"},
                {"message": "Giải câu 2", "document_position": 0}
            ]
        }
    }


class KeyAddRequest(BaseModel):
    """Request body for POST /keys."""
    key: str = Field(..., description="Gemini API key", min_length=1)


class DocumentsRequest(BaseModel):
    """Request body for POST /documents."""
    documents: List[Document]


class SearchRequest(BaseModel):
    """Request body for POST /search."""
    query: str = Field(default="", max_length=500)
    filters: SearchFilters = Field(default_factory=SearchFilters)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"query": "toan 2023"},
                {"query": "", "filters": {"subject": "vanHoc", "examType": "final"}}
            ]
        }
    }


# ============================================================
# RESPONSE MODELS
# ============================================================

class ChatResponse(BaseModel):
    """Response body for POST /chat."""
    success: bool
    message: Optional[str] = Field(None, description="Generated answer")
    error: Optional[str] = Field(None, description="Last error if every key failed")
    failure: Optional[FailureKind] = None
    used_key_index: Optional[int] = None
    attempts: int = 0
    usage: Dict[str, Any] = Field(default_factory=dict)


class KeyInfo(BaseModel):
    """One configured key with its statistics (key masked)."""
    index: int
    masked_key: str
    current: bool = False
    request_count: int = 0
    error_count: int = 0
    last_used_at: Optional[datetime] = None
    health: KeyHealth = KeyHealth.UNKNOWN
    last_error: Optional[str] = None


class KeyListResponse(BaseModel):
    """Response for the /keys endpoints."""
    keys: List[KeyInfo]
    current_index: int = 0
    fallback_enabled: bool = True


class DocumentsResponse(BaseModel):
    """Response for POST /documents."""
    indexed: int
    terms: int


class SearchHit(BaseModel):
    """A matching document with its name highlighted."""
    document: Document
    highlighted_name: str


class SearchResponse(BaseModel):
    """Response for POST /search."""
    results: List[SearchHit]
    total: int


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class FiltersResponse(AvailableFilters):
    """Response for GET /search/filters."""
    pass


class HistoryResponse(BaseModel):
    queries: List[str]


class HealthResponse(BaseModel):
    """Response for GET /health."""
    status: str = "healthy"
    version: str = "1.0.0"
    llm_transport: Optional[str] = None
    key_count: int = 0
    fallback_enabled: bool = True
    document_count: int = 0
