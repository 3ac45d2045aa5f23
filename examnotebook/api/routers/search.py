"""
Search router - corpus loading, search, suggestions and history.

Endpoints:
- POST   /documents           - Replace the corpus and rebuild the index
- POST   /search              - Text query plus attribute filters
- GET    /search/suggestions  - Autocomplete for a partial query
- GET    /search/filters      - Filter options present in the corpus
- GET    /search/history      - Recent queries
- DELETE /search/history      - Clear recent queries
"""

from fastapi import APIRouter, Query

from ..deps import (
    corpus_lock,
    get_documents,
    get_search_history,
    search_index,
    set_documents,
)
from ..schemas import (
    DocumentsRequest,
    DocumentsResponse,
    FiltersResponse,
    HistoryResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SuggestionsResponse,
)


router = APIRouter(tags=["Search"])


@router.post("/documents", response_model=DocumentsResponse)
def load_documents(request: DocumentsRequest):
    """Replace the corpus with the given documents."""
    set_documents(request.documents)
    return DocumentsResponse(indexed=len(request.documents), terms=search_index.term_count)


@router.post("/search", response_model=SearchResponse)
def search(request: SearchRequest):
    """Search the corpus. An empty query with no filters lists everything."""
    with corpus_lock:
        results = search_index.search(request.query, request.filters, get_documents())

    get_search_history().save(request.query)

    hits = [
        SearchHit(
            document=document,
            highlighted_name=search_index.highlight(document.name, request.query),
        )
        for document in results
    ]
    return SearchResponse(results=hits, total=len(hits))


@router.get("/search/suggestions", response_model=SuggestionsResponse)
def suggestions(q: str = Query("", max_length=100), limit: int = Query(10, ge=1, le=50)):
    return SuggestionsResponse(suggestions=search_index.suggestions(q, get_documents(), limit))


@router.get("/search/filters", response_model=FiltersResponse)
def available_filters():
    options = search_index.available_filters(get_documents())
    return FiltersResponse(**options.model_dump())


@router.get("/search/history", response_model=HistoryResponse)
def history():
    return HistoryResponse(queries=get_search_history().entries())


@router.delete("/search/history", response_model=HistoryResponse)
def clear_history():
    get_search_history().clear()
    return HistoryResponse(queries=[])
