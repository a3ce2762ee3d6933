import contextlib
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from support_rag_server.api.dependencies import (
    get_content_client,
    get_llm_client,
    get_snapshot_store,
    get_vector_store,
)
from support_rag_server.content.exa_client import ExaClient
from support_rag_server.core.errors import IndexNotFoundError
from support_rag_server.ingestion.snapshots import SnapshotStore
from support_rag_server.llm.client import Completion, LLMClient
from support_rag_server.main import app
from support_rag_server.search.rerank import keyword_overlap
from support_rag_server.store.base import (
    IndexConfig,
    IndexStats,
    NamespaceStats,
    RerankRequest,
    UpsertRecord,
    VectorStoreClient,
)


SUPPORT_PAGE = """# Aven Support

Welcome to support.

## How can we help?

![icon](https://example.com/icon.png)

##### Trending Articles
- What is the Aven card?
The Aven card is a credit card backed by [home equity](https://www.aven.com/equity).
SHOW MORE

##### Payments
- How do I make a payment?
You can pay in the Aven app or by mailing a check.
- Can I pay early?
Yes, you can pay early at any time without penalty.

##### Offer, Rates & Fees
- Is there an annual fee?
No, there is no annual fee for the Aven card.

##### Careers
- Are you hiring?
Check our careers page for open roles.

##### Account
- How do I close my account?
Call customer support and a specialist will close it for you.
"""


def _matches(fields: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    for key, condition in (filter or {}).items():
        value = fields.get(key)
        if isinstance(condition, dict):
            if "$eq" in condition and value != condition["$eq"]:
                return False
            if "$in" in condition and value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class FakeVectorStore(VectorStoreClient):
    """
    In-memory store. Scores are keyword overlap with chunk_text, so ordering
    is deterministic.
    """

    def __init__(
        self,
        indexes: Sequence[str] = ("aven-support",),
        supports_rerank: bool = False,
        supports_fetch: bool = True,
        honor_filters: bool = True,
    ) -> None:
        self.supports_rerank = supports_rerank
        self.supports_fetch = supports_fetch
        self.honor_filters = honor_filters
        self.data: Dict[str, Dict[str, Dict[str, Dict[str, Any]]]] = {n: {} for n in indexes}
        self.upsert_calls: List[List[str]] = []
        self.query_calls: List[Dict[str, Any]] = []
        self.created: List[IndexConfig] = []
        self.upsert_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None

    def seed(self, index_name: str, namespace: str, records: Sequence[UpsertRecord]) -> None:
        ns = self.data.setdefault(index_name, {}).setdefault(namespace, {})
        for r in records:
            ns[r.id] = r.fields()

    def _index(self, name: str) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if name not in self.data:
            raise IndexNotFoundError(name)
        return self.data[name]

    async def list_indexes(self) -> List[str]:
        return list(self.data)

    async def create_index(self, config: IndexConfig) -> None:
        self.created.append(config)
        self.data.setdefault(config.name, {})

    async def delete_index(self, name: str) -> None:
        self._index(name)
        del self.data[name]

    async def get_stats(self, name: str) -> IndexStats:
        index = self._index(name)
        return IndexStats(
            dimension=1024,
            total_vector_count=sum(len(ns) for ns in index.values()),
            namespaces={k: NamespaceStats(vector_count=len(v)) for k, v in index.items()},
        )

    async def upsert(self, index_name, namespace, records) -> None:
        self.upsert_calls.append([r.id for r in records])
        if self.upsert_error is not None:
            raise self.upsert_error
        self.seed(index_name, namespace, records)

    async def query_by_text(
        self,
        index_name,
        namespace,
        text,
        top_k,
        filter=None,
        rerank: Optional[RerankRequest] = None,
    ):
        self.query_calls.append(
            {"text": text, "top_k": top_k, "filter": filter, "rerank": rerank}
        )
        if self.query_error is not None:
            raise self.query_error

        records = self._index(index_name).get(namespace, {})
        hits = [
            {
                "_id": record_id,
                "_score": round(0.5 + 0.5 * keyword_overlap(text, fields.get("chunk_text", "")), 4),
                "fields": dict(fields),
            }
            for record_id, fields in records.items()
            if not self.honor_filters or _matches(fields, filter)
        ]
        hits.sort(key=lambda h: (-h["_score"], h["_id"]))
        hits = hits[:top_k]
        if rerank is not None:
            hits = hits[: rerank.top_n]
        return hits

    async def fetch(self, index_name, namespace, ids):
        if not self.supports_fetch:
            raise NotImplementedError
        records = self._index(index_name).get(namespace, {})
        return {i: dict(records[i]) for i in ids if i in records}

    async def delete_all(self, index_name, namespace) -> None:
        self._index(index_name).pop(namespace, None)

    async def delete_by_ids(self, index_name, namespace, ids) -> None:
        records = self._index(index_name).get(namespace, {})
        for i in ids:
            records.pop(i, None)


def make_record(record_id: str, category: str, question: str, answer: str) -> UpsertRecord:
    text = f"Question: {question}\n\nAnswer: {answer}"
    return UpsertRecord(
        id=record_id,
        chunk_text=text,
        category=category,
        question=question,
        timestamp="2024-01-01T00:00:00+00:00",
        original_text=text,
    )


SEED_RECORDS = [
    make_record("aven_faq_1", "Payments", "How do I make a payment?", "Use the app or mail a check."),
    make_record("aven_faq_2", "Payments", "What payment methods are accepted?", "ACH transfers and debit cards."),
    make_record("aven_faq_3", "Account", "How do I update my payment address?", "Edit it in account settings."),
    make_record("aven_faq_4", "Account", "How do I close my account?", "Call customer support."),
    make_record("aven_faq_5", "Application", "How long does approval take?", "Usually a few minutes."),
]


@pytest.fixture
def fake_store():
    store = FakeVectorStore()
    store.seed("aven-support", "default", SEED_RECORDS)
    return store


@pytest.fixture
def mock_llm():
    mock = AsyncMock(spec=LLMClient)
    mock.complete.return_value = Completion(
        text="You can pay in the app.", tokens_used=42, model="gpt-4o-mini"
    )
    return mock


@pytest.fixture
def mock_content():
    mock = AsyncMock(spec=ExaClient)
    mock.get_contents.return_value = {
        "results": [{"url": "https://www.aven.com/support", "text": SUPPORT_PAGE}]
    }
    mock.health_check.return_value = True
    return mock


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path)


@pytest.fixture
def client(fake_store, mock_llm, mock_content, snapshot_store):
    app.dependency_overrides[get_vector_store] = lambda: fake_store
    app.dependency_overrides[get_llm_client] = lambda: mock_llm
    app.dependency_overrides[get_content_client] = lambda: mock_content
    app.dependency_overrides[get_snapshot_store] = lambda: snapshot_store

    # Skip startup validation of real API keys
    @contextlib.asynccontextmanager
    async def mock_lifespan(app):
        yield

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = mock_lifespan

    with TestClient(app) as c:
        yield c

    app.router.lifespan_context = original_lifespan
    app.dependency_overrides = {}
