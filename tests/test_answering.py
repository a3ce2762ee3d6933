from unittest.mock import AsyncMock

import pytest

from support_rag_server.answering.prompts import FALLBACK_ANSWER, format_context, system_prompt
from support_rag_server.answering.service import SupportAnswerer
from support_rag_server.core.errors import ExternalServiceError
from support_rag_server.llm.client import Completion
from support_rag_server.search.models import SearchResponse, SearchResult
from support_rag_server.search.service import SearchService


def _response(*results: SearchResult) -> SearchResponse:
    return SearchResponse(
        results=list(results),
        total_results=len(results),
        processing_time=12.5,
        query="q",
        namespace="default",
    )


HITS = (
    SearchResult(id="a", score=0.91234, metadata={"category": "Payments", "original_text": "Pay in the app."}),
    SearchResult(id="b", score=0.5, metadata={"chunk_text": "Mail a check."}),
)


@pytest.fixture
def search():
    mock = AsyncMock(spec=SearchService)
    mock.semantic_search.return_value = _response(*HITS)
    return mock


def _answerer(search, llm, **kwargs):
    return SupportAnswerer(search, llm, index_name="aven-support", namespace="default", **kwargs)


def _system_message(llm) -> str:
    messages = llm.complete.await_args.args[0]
    assert messages[0]["role"] == "system"
    return messages[0]["content"]


def test_format_context():
    assert format_context(HITS, 4000) == (
        "[Context 1 - Payments (relevance: 0.912)]:\nPay in the app.\n\n"
        "[Context 2 - General (relevance: 0.500)]:\nMail a check."
    )


def test_format_context_truncates():
    assert len(format_context(HITS, 20)) == 20


def test_system_prompt_with_and_without_context():
    bare = system_prompt("Aven")
    assert "AI customer support assistant for Aven" in bare
    assert "Relevant context" not in bare

    with_context = system_prompt("Aven", "CTX")
    assert with_context.startswith(bare)
    assert with_context.endswith("\n\nRelevant context from Aven's knowledge base:\n\nCTX")


async def test_answer_with_context(search, mock_llm):
    answer = await _answerer(search, mock_llm).answer("How do I pay?")

    assert answer.message == "You can pay in the app."
    meta = answer.metadata
    assert meta.context_used
    assert meta.tokens_used == 42
    assert meta.model == "gpt-4o-mini"
    assert meta.search_results.count == 2
    assert meta.search_results.processing_time == 12.5
    assert meta.search_results.top_score == pytest.approx(0.91234)
    assert "[Context 1 - Payments (relevance: 0.912)]" in _system_message(mock_llm)

    config = search.semantic_search.await_args.args[2]
    assert config.top_k == 5
    assert config.rerank


async def test_message_order_includes_history(search, mock_llm):
    history = [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
    ]
    await _answerer(search, mock_llm).answer("How do I pay?", conversation=history)

    messages = mock_llm.complete.await_args.args[0]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[-1]["content"] == "How do I pay?"


async def test_search_failure_degrades_to_no_context(search, mock_llm):
    search.semantic_search.side_effect = ExternalServiceError("pinecone", "down")

    answer = await _answerer(search, mock_llm).answer("How do I pay?")

    assert answer.message == "You can pay in the app."
    assert not answer.metadata.context_used
    assert answer.metadata.search_results is None
    assert "Relevant context" not in _system_message(mock_llm)


async def test_empty_results_answer_without_context(search, mock_llm):
    search.semantic_search.return_value = _response()

    answer = await _answerer(search, mock_llm).answer("How do I pay?")

    assert not answer.metadata.context_used
    assert answer.metadata.search_results.count == 0
    assert answer.metadata.search_results.top_score == 0.0


async def test_context_can_be_disabled(search, mock_llm):
    answer = await _answerer(search, mock_llm).answer("Hi", include_context=False)

    search.semantic_search.assert_not_awaited()
    assert not answer.metadata.context_used


async def test_context_budget_is_respected(search, mock_llm):
    await _answerer(search, mock_llm, max_context_chars=30).answer("How do I pay?")

    system = _system_message(mock_llm)
    context = system.split("knowledge base:\n\n", 1)[1]
    assert len(context) == 30


async def test_overrides_reach_the_llm(search, mock_llm):
    await _answerer(search, mock_llm).answer("Hi", temperature=0.1, model="gpt-4o")

    kwargs = mock_llm.complete.await_args.kwargs
    assert kwargs["temperature"] == 0.1
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["max_tokens"] == 1000


async def test_empty_completion_uses_fallback_text(search, mock_llm):
    mock_llm.complete.return_value = Completion(text="", tokens_used=0, model="gpt-4o-mini")

    answer = await _answerer(search, mock_llm).answer("Hi")
    assert answer.message == FALLBACK_ANSWER


async def test_llm_errors_propagate(search, mock_llm):
    mock_llm.complete.side_effect = ExternalServiceError("openai", "HTTP 500", upstream_status=500)

    with pytest.raises(ExternalServiceError):
        await _answerer(search, mock_llm).answer("Hi")
