"""
Chat router - sends user questions to Gemini through the key ring.

Endpoints:
- POST /chat - Ask a question, optionally about a document in the corpus
"""

import asyncio

from fastapi import APIRouter, HTTPException, status

from examnotebook.llm import FailureKind, NotConfiguredError

from ..deps import (
    CHAT_TIMEOUT_SECONDS,
    get_documents,
    logger,
    send_serialized,
)
from ..schemas import ChatRequest, ChatResponse


router = APIRouter(tags=["Chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """
    Answer a question with the first working Gemini key.

    The synchronous key ring runs in a worker thread, serialized with other
    chat requests, and is bounded by CHAT_TIMEOUT_SECONDS.
    """
    document = None
    if request.document_position is not None:
        documents = get_documents()
        if request.document_position >= len(documents):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No document at position {request.document_position}",
            )
        document = documents[request.document_position]

    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(send_serialized, request.message, request.context, document),
            timeout=CHAT_TIMEOUT_SECONDS,
        )
    except NotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    except asyncio.TimeoutError:
        logger.error("Chat timed out after %ss: %s", CHAT_TIMEOUT_SECONDS, request.message[:100])
        return ChatResponse(
            success=False,
            error=f"Request timed out after {CHAT_TIMEOUT_SECONDS:g} seconds",
            failure=FailureKind.TRANSPORT_ERROR,
        )

    return ChatResponse(
        success=result.success,
        message=result.message,
        error=result.error,
        failure=result.failure,
        used_key_index=result.used_slot_index,
        attempts=result.attempts,
        usage=result.usage,
    )
