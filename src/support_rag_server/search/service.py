"""
Search Layer

Text queries against the vector store's integrated-embedding search. The
store embeds the query server-side; nothing here computes embeddings.

Design Goals
------------
- Stateless: every operation is one request/response against the store
- Store-specific hit shapes are normalized immediately after each call
- Store errors propagate to the caller
- Approximate operations say so in their response

Reranking
---------
With reranking on, `min(top_k * 5, 100)` candidates are fetched and the
reranker is asked for exactly `top_k`. Stores without a server-side
reranker get the local keyword-overlap fallback (see search.rerank), which
marks the response approximate.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import RerankMode, SearchConfig, SearchResponse, SearchResult
from .rerank import local_rerank
from ..store.base import RerankRequest, VectorStoreClient

logger = logging.getLogger("support.search")

MAX_CANDIDATES = 100
OVERFETCH_FACTOR = 5

# Probe texts for operations that have no user query
CATEGORY_SAMPLE_QUERY = "sample query"
SIMILAR_FALLBACK_QUERY = "similar documents"

CATEGORY_SAMPLE_SIZE = 100


# ---------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------

def normalize_hit(hit: Mapping[str, Any]) -> SearchResult:
    """
    Map one store hit onto SearchResult.

    Accepts both record-search hits ({"_id", "_score", "fields"}) and
    vector-query matches ({"id", "score", "metadata"}).
    """
    hit_id = hit.get("_id", hit.get("id"))
    score = hit.get("_score", hit.get("score"))
    metadata = hit.get("fields", hit.get("metadata"))
    return SearchResult(
        id=str(hit_id) if hit_id is not None else "",
        score=float(score or 0.0),
        metadata=dict(metadata or {}),
    )


def build_filter(config: SearchConfig) -> Optional[Dict[str, Any]]:
    """Merge the category constraints of `config` into its filter."""
    merged: Dict[str, Any] = dict(config.filter or {})
    if config.category:
        merged["category"] = {"$eq": config.category}
    elif config.categories:
        merged["category"] = {"$in": list(config.categories)}
    return merged or None


def _matches_categories(result: SearchResult, config: SearchConfig) -> bool:
    if config.category:
        return result.category == config.category
    if config.categories:
        return result.category in config.categories
    return True


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


# ---------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------

class SearchService:
    """
    Parameters
    ----------
    store : VectorStoreClient
        Injected store client.

    rerank_model : str
        Server-side reranker used when the store supports it.

    default_namespace : str
        Used when a SearchConfig leaves the namespace unset.
    """

    def __init__(
        self,
        store: VectorStoreClient,
        rerank_model: str = "bge-reranker-v2-m3",
        default_namespace: str = "default",
    ) -> None:
        self._store = store
        self.rerank_model = rerank_model
        self.default_namespace = default_namespace

    async def semantic_search(
        self,
        index_name: str,
        query: str,
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        config = config or SearchConfig()
        start = time.perf_counter()
        namespace = config.namespace or self.default_namespace
        top_k = config.top_k

        rerank_mode: RerankMode = "none"
        rerank: Optional[RerankRequest] = None
        fetch_k = top_k
        if config.rerank:
            fetch_k = min(top_k * OVERFETCH_FACTOR, MAX_CANDIDATES)
            if self._store.supports_rerank:
                rerank = RerankRequest(model=self.rerank_model, top_n=top_k)
                rerank_mode = "server"
            else:
                rerank_mode = "local_fallback"

        logger.info(
            "Semantic search on %s/%s (top_k=%d, fetch=%d, rerank=%s)",
            index_name, namespace, top_k, fetch_k, rerank_mode,
        )

        hits = await self._store.query_by_text(
            index_name,
            namespace,
            query,
            top_k=fetch_k,
            filter=build_filter(config),
            rerank=rerank,
        )
        results = [normalize_hit(h) for h in hits]
        results = [r for r in results if _matches_categories(r, config)]

        if rerank_mode == "local_fallback":
            results = local_rerank(query, results, top_k)
        else:
            results = results[:top_k]

        return SearchResponse(
            results=results,
            total_results=len(results),
            processing_time=_elapsed_ms(start),
            query=query,
            namespace=namespace,
            approximate=rerank_mode == "local_fallback",
            rerank_mode=rerank_mode,
        )

    async def category_search(
        self,
        index_name: str,
        query: str,
        category: str,
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        config = (config or SearchConfig()).model_copy(
            update={"category": category, "categories": None}
        )
        return await self.semantic_search(index_name, query, config)

    async def multi_category_search(
        self,
        index_name: str,
        query: str,
        categories: Sequence[str],
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        config = (config or SearchConfig()).model_copy(
            update={"categories": list(categories), "category": None}
        )
        return await self.semantic_search(index_name, query, config)

    async def hybrid_search(
        self,
        index_name: str,
        query: str,
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        """Same as semantic_search; no keyword fusion is implemented yet."""
        return await self.semantic_search(index_name, query, config)

    async def find_similar(
        self,
        index_name: str,
        document_id: str,
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        """
        Documents similar to `document_id`. Always approximate.

        When the store can fetch records by id, the stored text of the
        document is used as the query. Otherwise a generic query
        stands in for it. The document itself is excluded either way.
        """
        config = config or SearchConfig()
        namespace = config.namespace or self.default_namespace

        query = await self._document_text(index_name, namespace, document_id)
        if query is None:
            logger.info(
                "No stored text for %s; using generic similarity query", document_id
            )
            query = SIMILAR_FALLBACK_QUERY

        # One extra slot for the document itself, within the candidate cap
        widened = config.model_copy(
            update={"top_k": min(config.top_k + 1, MAX_CANDIDATES)}
        )
        response = await self.semantic_search(index_name, query, widened)

        results = [r for r in response.results if r.id != document_id][: config.top_k]
        return response.model_copy(
            update={
                "results": results,
                "total_results": len(results),
                "approximate": True,
            }
        )

    async def _document_text(
        self,
        index_name: str,
        namespace: str,
        document_id: str,
    ) -> Optional[str]:
        if not self._store.supports_fetch:
            return None
        try:
            found = await self._store.fetch(index_name, namespace, [document_id])
        except NotImplementedError:
            return None
        fields = found.get(document_id) or {}
        return fields.get("original_text") or fields.get("chunk_text") or None

    # ------------------------------------------------------------------
    # Sampled aggregates (best effort, not exhaustive)
    # ------------------------------------------------------------------

    async def get_categories(
        self,
        index_name: str,
        namespace: Optional[str] = None,
    ) -> List[str]:
        """
        Distinct categories seen in a sample of up to 100 records.

        Categories absent from the sample are not reported.
        """
        response = await self.semantic_search(
            index_name,
            CATEGORY_SAMPLE_QUERY,
            SearchConfig(top_k=CATEGORY_SAMPLE_SIZE, namespace=namespace, rerank=False),
        )
        return sorted({r.category for r in response.results if r.category})

    async def records_by_category(
        self,
        index_name: str,
        category: str,
        namespace: Optional[str] = None,
        top_k: int = CATEGORY_SAMPLE_SIZE,
    ) -> SearchResponse:
        """Up to `top_k` records of one category, queried by the category name."""
        return await self.category_search(
            index_name,
            category,
            category,
            SearchConfig(top_k=top_k, namespace=namespace, rerank=False),
        )

    async def count_by_category(
        self,
        index_name: str,
        namespace: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Per-category record counts, each capped at 100.

        Only categories found by get_categories are counted.
        """
        counts: Dict[str, int] = {}
        for category in await self.get_categories(index_name, namespace):
            response = await self.records_by_category(index_name, category, namespace)
            counts[category] = response.total_results
        return counts
