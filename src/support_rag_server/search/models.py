"""
Search Data Models

Canonical shapes for everything the search layer returns. Store-specific
hit shapes never leave search.service: they are normalized into
SearchResult right after each store call.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict


RerankMode = Literal["server", "local_fallback", "none"]


class SearchConfig(BaseModel):
    """
    Per-call search options.

    `category` and `categories` are merged into `filter`; when both the
    filter and a category constraint name the category field, the category
    constraint wins.
    """

    top_k: int = Field(default=10, ge=1, le=100)
    namespace: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None
    category: Optional[str] = None
    categories: Optional[List[str]] = None
    rerank: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


class SearchResult(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def text(self) -> str:
        return self.metadata.get("original_text") or self.metadata.get("chunk_text") or ""

    @property
    def category(self) -> Optional[str]:
        return self.metadata.get("category")


class SearchResponse(BaseModel):
    """
    Result of one search operation.

    `approximate` is True for sampled or proxy operations (find_similar,
    category enumeration and counts) and for the local rerank fallback.
    """

    results: List[SearchResult] = Field(default_factory=list)
    total_results: int = Field(default=0, ge=0)
    processing_time: float = Field(default=0.0, ge=0.0, description="Milliseconds.")
    query: str = ""
    namespace: str = ""
    approximate: bool = False
    rerank_mode: RerankMode = "none"

    model_config = ConfigDict(frozen=True)

    @property
    def top_score(self) -> Optional[float]:
        return self.results[0].score if self.results else None
