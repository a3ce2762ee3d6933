"""
Chat Routes

Retrieval-augmented support chat. Retrieval trouble never fails a chat
request: the answer is generated without context and
`metadata.contextUsed` is false.
"""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, status

from .dependencies import get_answerer
from .models import ChatMetadata, ChatRequest, ChatResponse, SearchResultsSummary
from ..answering.service import SupportAnswerer
from ..config import settings

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post(
    "",
    response_model=ChatResponse,
    summary="Answer a support question with knowledge-base context",
    status_code=status.HTTP_200_OK,
)
async def chat(
    req: ChatRequest,
    answerer: Annotated[SupportAnswerer, Depends(get_answerer)],
) -> ChatResponse:
    """
    Parameters
    ----------
    req : ChatRequest
        The new message, optional prior turns, and per-call overrides for
        temperature, model, index and namespace.

    Returns
    -------
    ChatResponse
        Generated answer plus timing, token usage and retrieval metadata.
    """
    index_name = req.index_name or answerer.index_name
    namespace = req.namespace or answerer.namespace

    answer = await answerer.answer(
        req.message,
        conversation=[turn.model_dump() for turn in req.conversation],
        include_context=req.include_context,
        temperature=req.temperature,
        model=req.model,
        index_name=index_name,
        namespace=namespace,
    )

    meta = answer.metadata
    summary = None
    if meta.search_results is not None:
        summary = SearchResultsSummary(
            count=meta.search_results.count,
            processing_time=meta.search_results.processing_time,
            top_score=meta.search_results.top_score,
        )

    return ChatResponse(
        message=answer.message,
        metadata=ChatMetadata(
            model=meta.model,
            response_time=meta.response_time,
            tokens_used=meta.tokens_used,
            context_used=meta.context_used,
            search_results=summary,
        ),
        index_name=index_name,
        namespace=namespace,
    )


@router.get("", summary="Describe the chat API")
def chat_info() -> Dict[str, Any]:
    return {
        "message": f"{settings.company_name} AI Customer Support Chat API",
        "description": "RAG-powered chat using vector search and an LLM",
        "endpoints": {
            "POST /chat": {
                "message": "string (required) - User message",
                "conversation": "array (optional) - Previous conversation turns",
                "indexName": "string (optional) - Vector index name",
                "namespace": "string (optional) - Vector index namespace",
                "includeContext": "boolean (optional) - Whether to use retrieved context",
                "temperature": "number (optional) - Sampling temperature (0-2)",
                "model": "string (optional) - Completion model",
            },
        },
        "configuration": {
            "defaultIndex": settings.pinecone_index_name,
            "defaultNamespace": settings.pinecone_namespace,
            "defaultModel": settings.chat_model,
            "maxContextLength": settings.max_context_chars,
            "searchResultsCount": settings.context_top_k,
        },
    }
