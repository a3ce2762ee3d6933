"""
Composition Root

Builds the process-wide clients once and the stateless services on top of
them. Routes receive everything through FastAPI dependencies, so tests swap
in fakes with `app.dependency_overrides`.
"""

from functools import lru_cache

from fastapi import Depends

from ..answering.service import SupportAnswerer
from ..config import settings
from ..content.exa_client import ExaClient
from ..core.retry import RetryPolicy
from ..ingestion.indexing import IndexingService
from ..ingestion.orchestrator import ScrapeOrchestrator
from ..ingestion.snapshots import SnapshotStore
from ..llm.client import LLMClient
from ..search.service import SearchService
from ..store.base import IndexConfig, VectorStoreClient
from ..store.pinecone import PineconeClient
from ..store.writer import IndexWriter


# ---------------------------------------------------------------------
# Clients (one per process)
# ---------------------------------------------------------------------

@lru_cache
def get_vector_store() -> VectorStoreClient:
    return PineconeClient()


@lru_cache
def get_content_client() -> ExaClient:
    return ExaClient()


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()


@lru_cache
def get_snapshot_store() -> SnapshotStore:
    return SnapshotStore(settings.data_dir)


# ---------------------------------------------------------------------
# Services (cheap, rebuilt per request around the injected clients)
# ---------------------------------------------------------------------

def default_index_config() -> IndexConfig:
    return IndexConfig(
        name=settings.pinecone_index_name,
        model=settings.embedding_model,
        text_field=settings.embedding_text_field,
        cloud=settings.pinecone_cloud,
        region=settings.pinecone_region,
    )


def get_search_service(
    store: VectorStoreClient = Depends(get_vector_store),
) -> SearchService:
    return SearchService(
        store,
        rerank_model=settings.rerank_model,
        default_namespace=settings.pinecone_namespace,
    )


def get_index_writer(
    store: VectorStoreClient = Depends(get_vector_store),
) -> IndexWriter:
    return IndexWriter(
        store,
        retry_policy=RetryPolicy(max_attempts=settings.upsert_max_attempts),
        batch_delay=settings.upsert_batch_delay,
        default_batch_size=settings.upsert_batch_size,
    )


def get_indexing_service(
    store: VectorStoreClient = Depends(get_vector_store),
    writer: IndexWriter = Depends(get_index_writer),
    snapshots: SnapshotStore = Depends(get_snapshot_store),
) -> IndexingService:
    return IndexingService(store, writer, snapshots, default_index_config())


def get_answerer(
    search: SearchService = Depends(get_search_service),
    llm: LLMClient = Depends(get_llm_client),
) -> SupportAnswerer:
    return SupportAnswerer(
        search,
        llm,
        index_name=settings.pinecone_index_name,
        namespace=settings.pinecone_namespace,
        company_name=settings.company_name,
        top_k=settings.context_top_k,
        max_context_chars=settings.max_context_chars,
        model=settings.chat_model,
        temperature=settings.chat_temperature,
        max_tokens=settings.chat_max_tokens,
    )


def get_scrape_orchestrator(
    content: ExaClient = Depends(get_content_client),
    snapshots: SnapshotStore = Depends(get_snapshot_store),
) -> ScrapeOrchestrator:
    return ScrapeOrchestrator(
        content,
        snapshots,
        source_url=settings.support_url,
        persistence_policy=settings.snapshot_failure_policy,
    )
