"""
Embeddings Routes

This module exposes endpoints for:
- Loading a processed snapshot into the vector index
- Querying index statistics
- Deleting records, a namespace, or the whole index

Destructive operations and ingestion must not run concurrently against the
same namespace; callers serialize them.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from .dependencies import (
    get_index_writer,
    get_indexing_service,
    get_vector_store,
)
from .models import (
    BatchErrorBody,
    EmbeddingsDeleteRequest,
    EmbeddingsRequest,
    EmbeddingsResponse,
    EmbeddingsStatsResponse,
    IndexStatsBody,
    OperationResult,
)
from ..config import settings
from ..core.errors import IndexNotFoundError
from ..ingestion.indexing import IndexingService
from ..store.base import VectorStoreClient
from ..store.writer import IndexWriter

router = APIRouter(prefix="/embeddings", tags=["embeddings"])


@router.post(
    "",
    response_model=EmbeddingsResponse,
    summary="Load a processed snapshot into the vector index",
    status_code=status.HTTP_200_OK,
)
async def process_embeddings(
    indexing: Annotated[IndexingService, Depends(get_indexing_service)],
    req: Annotated[Optional[EmbeddingsRequest], Body()] = None,
) -> EmbeddingsResponse:
    """
    Create the index if missing (or recreate it when `forceRecreate` is
    set), then validate, convert and batch-upsert the FAQs of `dataFile`
    or of the newest processed snapshot.

    Partial failure is reported, not raised: check `failed` and `errors`.
    """
    req = req or EmbeddingsRequest()
    index_name = req.index_name or settings.pinecone_index_name
    namespace = req.namespace or settings.pinecone_namespace

    report = await indexing.ingest(
        index_name,
        namespace,
        data_file=req.data_file,
        force_recreate=req.force_recreate,
        batch_size=req.batch_size,
    )

    return EmbeddingsResponse(
        success=report.success,
        message=(
            "Data processed successfully with integrated embeddings"
            if report.success
            else "Data processed with failures"
        ),
        index_name=index_name,
        namespace=namespace,
        data_file=report.data_file.name,
        processed=report.processed,
        failed=report.failed,
        rejected=report.rejected,
        processing_time=report.processing_time,
        errors=[BatchErrorBody(**e.model_dump()) for e in report.errors],
        stats=IndexStatsBody.from_stats(report.stats),
    )


@router.get(
    "",
    response_model=EmbeddingsStatsResponse,
    summary="Vector index statistics",
)
async def embedding_stats(
    store: Annotated[VectorStoreClient, Depends(get_vector_store)],
    index_name: Annotated[Optional[str], Query(alias="indexName")] = None,
    namespace: Optional[str] = None,
) -> EmbeddingsStatsResponse:
    index_name = index_name or settings.pinecone_index_name
    if not await store.index_exists(index_name):
        raise IndexNotFoundError(index_name)

    stats = await store.get_stats(index_name)
    return EmbeddingsStatsResponse(
        index_name=index_name,
        namespace=namespace or settings.pinecone_namespace,
        model=settings.embedding_model,
        stats=IndexStatsBody.from_stats(stats),
    )


@router.delete(
    "",
    response_model=OperationResult,
    response_model_exclude_none=True,
    summary="Delete records, a namespace, or the index",
)
async def delete_embeddings(
    store: Annotated[VectorStoreClient, Depends(get_vector_store)],
    writer: Annotated[IndexWriter, Depends(get_index_writer)],
    req: Annotated[Optional[EmbeddingsDeleteRequest], Body()] = None,
) -> OperationResult:
    req = req or EmbeddingsDeleteRequest()
    index_name = req.index_name or settings.pinecone_index_name
    namespace = req.namespace or settings.pinecone_namespace

    if not await store.index_exists(index_name):
        raise IndexNotFoundError(index_name)

    if req.ids:
        await writer.delete_by_ids(index_name, namespace, req.ids)
        return OperationResult(
            message="Records deleted",
            index_name=index_name,
            namespace=namespace,
            count=len(req.ids),
        )

    if req.delete_all:
        await writer.delete_all(index_name, namespace)
        return OperationResult(
            message="All records deleted from namespace",
            index_name=index_name,
            namespace=namespace,
        )

    await store.delete_index(index_name)
    return OperationResult(message="Index deleted", index_name=index_name)
