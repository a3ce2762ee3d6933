"""
Local rerank fallback.

Used only when the store has no server-side reranker. It blends the vector
similarity score with a plain keyword-overlap score:

    0.7 * semantic_score + 0.3 * keyword_overlap

This is a degraded heuristic, not a substitute for a cross-encoder
reranker. Responses that used it are flagged approximate.
"""

from __future__ import annotations

import re
from typing import List, Set

from .models import SearchResult

SEMANTIC_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3

_WORD = re.compile(r"[a-z0-9]+")


def _terms(text: str) -> Set[str]:
    return {t for t in _WORD.findall(text.lower()) if len(t) > 2}


def keyword_overlap(query: str, text: str) -> float:
    """Fraction of query terms (longer than two characters) found in `text`."""
    query_terms = _terms(query)
    if not query_terms:
        return 0.0
    return len(query_terms & _terms(text)) / len(query_terms)


def local_rerank(query: str, results: List[SearchResult], top_n: int) -> List[SearchResult]:
    rescored = [
        r.model_copy(
            update={
                "score": SEMANTIC_WEIGHT * r.score
                + KEYWORD_WEIGHT * keyword_overlap(query, r.text)
            }
        )
        for r in results
    ]
    rescored.sort(key=lambda r: r.score, reverse=True)
    return rescored[:top_n]
