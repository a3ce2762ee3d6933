"""
Search Routes

Direct search over the support index. Unlike chat, store failures here are
returned to the caller: getting search results is the whole point of the
request.
"""

from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import get_search_service, get_vector_store
from .models import (
    IndexStatsBody,
    SearchHit,
    SearchInfoResponse,
    SearchRequest,
    SearchResponseBody,
)
from ..config import settings
from ..core.errors import IndexNotFoundError
from ..search.models import SearchConfig, SearchResponse
from ..search.service import SearchService
from ..store.base import VectorStoreClient

router = APIRouter(prefix="/search", tags=["search"])


async def _require_index(store: VectorStoreClient, index_name: str) -> None:
    if not await store.index_exists(index_name):
        raise IndexNotFoundError(index_name)


async def _dispatch(
    search: SearchService,
    index_name: str,
    req: SearchRequest,
    config: SearchConfig,
) -> SearchResponse:
    if req.search_type == "category":
        if not req.category:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Category required for category search",
            )
        return await search.category_search(index_name, req.query, req.category, config)

    if req.search_type == "similar":
        if not req.document_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Document ID required for similar search",
            )
        return await search.find_similar(index_name, req.document_id, config)

    if req.search_type == "hybrid":
        return await search.hybrid_search(index_name, req.query, config)

    if req.categories:
        return await search.multi_category_search(index_name, req.query, req.categories, config)
    if req.category:
        return await search.category_search(index_name, req.query, req.category, config)
    return await search.semantic_search(index_name, req.query, config)


@router.post(
    "",
    response_model=SearchResponseBody,
    summary="Semantic search over the support index",
    status_code=status.HTTP_200_OK,
)
async def search(
    req: SearchRequest,
    store: Annotated[VectorStoreClient, Depends(get_vector_store)],
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> SearchResponseBody:
    """
    Parameters
    ----------
    req : SearchRequest
        Query text plus:
        - topK: number of results (1-100)
        - searchType: semantic | category | hybrid | similar
        - category / categories: category constraints
        - documentId: required for "similar"
        - filter: extra metadata filter

    Returns
    -------
    SearchResponseBody
        Ranked results. `approximate` is true for "similar" and whenever
        the local rerank fallback was used.
    """
    index_name = req.index_name or settings.pinecone_index_name
    namespace = req.namespace or settings.pinecone_namespace
    await _require_index(store, index_name)

    config = SearchConfig(
        top_k=req.top_k,
        namespace=namespace,
        filter=req.filter,
        rerank=req.use_reranking,
    )
    result = await _dispatch(search_service, index_name, req, config)

    return SearchResponseBody(
        results=[SearchHit(id=r.id, score=r.score, metadata=r.metadata) for r in result.results],
        total_results=result.total_results,
        processing_time=result.processing_time,
        query=result.query,
        namespace=result.namespace,
        index_name=index_name,
        approximate=result.approximate,
        rerank_mode=result.rerank_mode,
    )


@router.get(
    "",
    response_model=SearchInfoResponse,
    response_model_exclude_none=True,
    summary="Index stats, sampled categories, or sampled category counts",
)
async def search_info(
    store: Annotated[VectorStoreClient, Depends(get_vector_store)],
    search_service: Annotated[SearchService, Depends(get_search_service)],
    action: Literal["stats", "categories", "category-counts"] = "stats",
    index_name: Annotated[Optional[str], Query(alias="indexName")] = None,
    namespace: Optional[str] = None,
) -> SearchInfoResponse:
    """
    Categories and counts are sampled from up to 100 records and are
    flagged approximate.
    """
    index_name = index_name or settings.pinecone_index_name
    namespace = namespace or settings.pinecone_namespace
    await _require_index(store, index_name)

    if action == "categories":
        return SearchInfoResponse(
            index_name=index_name,
            namespace=namespace,
            categories=await search_service.get_categories(index_name, namespace),
            approximate=True,
        )

    if action == "category-counts":
        return SearchInfoResponse(
            index_name=index_name,
            namespace=namespace,
            category_counts=await search_service.count_by_category(index_name, namespace),
            approximate=True,
        )

    stats = await store.get_stats(index_name)
    return SearchInfoResponse(
        index_name=index_name,
        namespace=namespace,
        stats=IndexStatsBody.from_stats(stats),
        categories=await search_service.get_categories(index_name, namespace),
        approximate=True,
    )
