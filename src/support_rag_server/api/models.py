"""
API Models

Pydantic models for request/response validation across the chat, search,
embeddings and scrape endpoints.

Design Goals
------------
- camelCase on the wire, snake_case in Python (populate_by_name)
- Safe defaults (no shared mutable state)
- Unknown request fields rejected
- Clear schema documentation for OpenAPI generation
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from ..ingestion.models import ScrapedFAQItem, SnapshotMetadata
from ..search.models import RerankMode
from ..store.base import IndexStats


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RequestModel(ApiModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------

class IndexStatsBody(ApiModel):
    """Index statistics in wire shape."""
    dimension: int = 0
    total_vector_count: int = 0
    index_fullness: float = 0.0
    namespaces: Dict[str, Dict[str, int]] = Field(default_factory=dict)

    @classmethod
    def from_stats(cls, stats: IndexStats) -> "IndexStatsBody":
        return cls(
            dimension=stats.dimension,
            total_vector_count=stats.total_vector_count,
            index_fullness=stats.index_fullness,
            namespaces={
                name: {"vectorCount": ns.vector_count}
                for name, ns in stats.namespaces.items()
            },
        )


class OperationResult(ApiModel):
    """
    Standardized mutation operation result.
    """
    success: bool = True
    message: str
    index_name: str
    namespace: Optional[str] = None
    count: Optional[int] = Field(default=None, ge=0)


# ---------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------

class ChatTurn(RequestModel):
    """
    Single prior message in a conversation.
    """
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(RequestModel):
    message: str = Field(..., min_length=1)
    conversation: List[ChatTurn] = Field(default_factory=list)
    index_name: Optional[str] = None
    namespace: Optional[str] = None
    include_context: bool = True
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    model: Optional[str] = None


class SearchResultsSummary(ApiModel):
    count: int
    processing_time: float
    top_score: float


class ChatMetadata(ApiModel):
    model: str
    response_time: float
    tokens_used: int
    context_used: bool
    search_results: Optional[SearchResultsSummary] = None


class ChatResponse(ApiModel):
    success: bool = True
    message: str
    metadata: ChatMetadata
    index_name: str
    namespace: str


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

SearchType = Literal["semantic", "category", "hybrid", "similar"]


class SearchRequest(RequestModel):
    """
    Search request. `searchType` defaults to semantic; "category" needs
    `category` and "similar" needs `documentId`.
    """
    query: str = Field(..., min_length=1)
    index_name: Optional[str] = None
    namespace: Optional[str] = None
    top_k: int = Field(default=10, ge=1, le=100)
    category: Optional[str] = None
    categories: Optional[List[str]] = None
    search_type: SearchType = "semantic"
    document_id: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None
    use_reranking: bool = True


class SearchHit(ApiModel):
    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResponseBody(ApiModel):
    success: bool = True
    results: List[SearchHit]
    total_results: int
    processing_time: float
    query: str
    namespace: str
    index_name: str
    approximate: bool = False
    rerank_mode: RerankMode = "none"


class SearchInfoResponse(ApiModel):
    """GET /search: stats, categories or category counts."""
    success: bool = True
    index_name: str
    namespace: str
    stats: Optional[IndexStatsBody] = None
    categories: Optional[List[str]] = None
    category_counts: Optional[Dict[str, int]] = None
    approximate: bool = False


# ---------------------------------------------------------------------
# Embeddings Models
# ---------------------------------------------------------------------

class EmbeddingsRequest(RequestModel):
    data_file: Optional[str] = None
    index_name: Optional[str] = None
    namespace: Optional[str] = None
    force_recreate: bool = False
    batch_size: Optional[int] = Field(default=None, ge=1, le=1000)


class BatchErrorBody(ApiModel):
    code: str
    message: str
    batch_index: Optional[int] = None
    record_count: int = 0


class EmbeddingsResponse(ApiModel):
    success: bool
    message: str
    index_name: str
    namespace: str
    data_file: str
    processed: int
    failed: int
    rejected: int
    processing_time: float
    errors: List[BatchErrorBody] = Field(default_factory=list)
    stats: IndexStatsBody


class EmbeddingsStatsResponse(ApiModel):
    success: bool = True
    index_name: str
    namespace: str
    model: str
    stats: IndexStatsBody


class EmbeddingsDeleteRequest(RequestModel):
    """
    Without flags the whole index is deleted. `deleteAll` clears only the
    namespace; `ids` deletes just those records.
    """
    index_name: Optional[str] = None
    namespace: Optional[str] = None
    delete_all: bool = False
    ids: Optional[List[str]] = Field(default=None, min_length=1)


# ---------------------------------------------------------------------
# Scrape Models
# ---------------------------------------------------------------------

class ScrapeRequest(RequestModel):
    save_to_file: bool = True
    max_retries: Optional[int] = Field(default=None, ge=1, le=10)
    filename: Optional[str] = None


class ScrapeStats(ApiModel):
    total_faqs: int
    categories: List[str]
    category_distribution: Dict[str, int]
    duration_ms: float


class ScrapeResponse(ApiModel):
    success: bool = True
    message: str
    metadata: SnapshotMetadata
    stats: ScrapeStats
    saved_file: Optional[str] = Field(default=None, alias="saved_file")
    faqs: List[ScrapedFAQItem]
