"""
Retrieval-Augmented Answering

Answers one user message with support-document context:

1. semantic search for the message (top_k context hits, reranked)
2. format the hits into a bounded context block
3. system prompt + context + prior turns + new message -> LLM

Retrieval is best effort. If search fails or finds nothing the answer is
generated without context and `context_used` is False. LLM failures are
not recovered here; they propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .prompts import FALLBACK_ANSWER, format_context, system_prompt
from ..llm.client import LLMClient
from ..search.models import SearchConfig, SearchResponse
from ..search.service import SearchService

logger = logging.getLogger("support.answering")


@dataclass(frozen=True)
class SearchSummary:
    count: int
    processing_time: float
    top_score: float


@dataclass(frozen=True)
class AnswerMetadata:
    model: str
    response_time: float
    tokens_used: int
    context_used: bool
    search_results: Optional[SearchSummary] = None


@dataclass(frozen=True)
class Answer:
    message: str
    metadata: AnswerMetadata


class SupportAnswerer:
    """
    Parameters
    ----------
    search : SearchService
        Retrieval for context.

    llm : LLMClient
        Completion backend.

    index_name, namespace : str
        Where support documents live.

    top_k : int
        Context hits per question.

    max_context_chars : int
        Budget for the formatted context block.

    model, temperature, max_tokens
        Completion defaults; per-call values override them.
    """

    def __init__(
        self,
        search: SearchService,
        llm: LLMClient,
        index_name: str,
        namespace: str,
        company_name: str = "Aven",
        top_k: int = 5,
        max_context_chars: int = 4000,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        self._search = search
        self._llm = llm
        self.index_name = index_name
        self.namespace = namespace
        self.company_name = company_name
        self.top_k = top_k
        self.max_context_chars = max_context_chars
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def answer(
        self,
        message: str,
        conversation: Sequence[Dict[str, Any]] = (),
        include_context: bool = True,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        index_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Answer:
        model = model or self.model
        temperature = self.temperature if temperature is None else temperature

        context = ""
        search_response: Optional[SearchResponse] = None
        if include_context:
            search_response = await self._retrieve(
                message, index_name or self.index_name, namespace or self.namespace
            )
            if search_response is not None and search_response.results:
                context = format_context(search_response.results, self.max_context_chars)
                logger.info(
                    "Context prepared from %d hits (%d chars)",
                    len(search_response.results), len(context),
                )
            elif search_response is not None:
                logger.warning("No search results found for context")

        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt(self.company_name, context)},
            *({"role": m["role"], "content": m["content"]} for m in conversation),
            {"role": "user", "content": message},
        ]

        logger.info("Generating response with %s (%d messages)", model, len(messages))
        start = time.perf_counter()
        completion = await self._llm.complete(
            messages,
            model=model,
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        response_time = round((time.perf_counter() - start) * 1000, 3)

        summary = None
        if search_response is not None:
            summary = SearchSummary(
                count=len(search_response.results),
                processing_time=search_response.processing_time,
                top_score=search_response.top_score or 0.0,
            )

        return Answer(
            message=completion.text or FALLBACK_ANSWER,
            metadata=AnswerMetadata(
                model=model,
                response_time=response_time,
                tokens_used=completion.tokens_used,
                context_used=bool(context),
                search_results=summary,
            ),
        )

    async def _retrieve(
        self,
        message: str,
        index_name: str,
        namespace: str,
    ) -> Optional[SearchResponse]:
        try:
            return await self._search.semantic_search(
                index_name,
                message,
                SearchConfig(top_k=self.top_k, namespace=namespace, rerank=True),
            )
        except Exception:
            logger.exception("Context retrieval failed; answering without context")
            return None
