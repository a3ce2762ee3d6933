"""
Vector Store Contract

The vector index is an external service that embeds text server-side
(integrated embeddings). This module defines the operations the rest of the
system relies on; concrete clients implement them against a real backend,
and tests implement them in memory.

Hit shapes returned by `query_by_text` are backend-specific on purpose: the
search layer normalizes them immediately after each call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, ConfigDict


# ---------------------------------------------------------------------
# Value Types
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class IndexConfig:
    """Configuration for an index with integrated embeddings."""

    name: str
    model: str = "llama-text-embed-v2"
    text_field: str = "chunk_text"
    cloud: Literal["aws", "gcp", "azure"] = "aws"
    region: str = "us-east-1"
    wait_until_ready: bool = True


@dataclass(frozen=True)
class RerankRequest:
    """Server-side rerank step applied to the candidates of a text query."""

    model: str
    top_n: int
    rank_fields: List[str] = field(default_factory=lambda: ["original_text"])


class NamespaceStats(BaseModel):
    vector_count: int = Field(default=0, ge=0)


class IndexStats(BaseModel):
    dimension: int = Field(default=0, ge=0)
    total_vector_count: int = Field(default=0, ge=0)
    index_fullness: float = Field(default=0.0, ge=0.0)
    namespaces: Dict[str, NamespaceStats] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class UpsertRecord(BaseModel):
    """
    Flattened record sent to the store.

    `chunk_text` is the field the store embeds. Every other field is stored
    as flat metadata; `original_text` duplicates the full text so rerank can
    target it.
    """

    id: str = Field(..., min_length=1)
    chunk_text: str = Field(..., min_length=1)
    category: str
    question: str
    source: Optional[str] = None
    timestamp: str
    original_text: str

    model_config = ConfigDict(frozen=True, extra="forbid")

    def fields(self) -> Dict[str, Any]:
        """Metadata fields, without the id and without unset values."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


# ---------------------------------------------------------------------
# Store Contract
# ---------------------------------------------------------------------

class VectorStoreClient(ABC):
    """
    Operations consumed from the vector store.

    Capability flags let callers pick a fallback instead of failing when an
    optional operation is unavailable.
    """

    supports_rerank: bool = False
    supports_fetch: bool = False

    @abstractmethod
    async def list_indexes(self) -> List[str]:
        ...

    async def index_exists(self, name: str) -> bool:
        return name in await self.list_indexes()

    @abstractmethod
    async def create_index(self, config: IndexConfig) -> None:
        ...

    @abstractmethod
    async def delete_index(self, name: str) -> None:
        ...

    @abstractmethod
    async def get_stats(self, name: str) -> IndexStats:
        ...

    @abstractmethod
    async def upsert(
        self,
        index_name: str,
        namespace: str,
        records: Sequence[UpsertRecord],
    ) -> None:
        """Write records; raises on any failure."""

    @abstractmethod
    async def query_by_text(
        self,
        index_name: str,
        namespace: str,
        text: str,
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        rerank: Optional[RerankRequest] = None,
    ) -> List[Dict[str, Any]]:
        """
        Embed `text` server-side and return the raw hits.

        `rerank` is only honoured when `supports_rerank` is True.
        """

    async def fetch(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> Dict[str, Dict[str, Any]]:
        """Stored fields keyed by id. Missing ids are absent from the result."""
        raise NotImplementedError("fetch by id is not supported by this store")

    @abstractmethod
    async def delete_all(self, index_name: str, namespace: str) -> None:
        ...

    @abstractmethod
    async def delete_by_ids(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> None:
        ...
