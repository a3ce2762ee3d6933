from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from support_rag_server.content.exa_client import ExaClient
from support_rag_server.core.errors import (
    ConfigurationError,
    ExternalServiceError,
    ScrapeError,
    SnapshotPersistenceError,
)
from support_rag_server.ingestion.orchestrator import ScrapeOrchestrator
from support_rag_server.ingestion.snapshots import SnapshotStore

from conftest import SUPPORT_PAGE

URL = "https://www.aven.com/support"
PAYLOAD = {"results": [{"url": URL, "text": SUPPORT_PAGE}]}
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _orchestrator(content, snapshots=None, policy="continue"):
    return ScrapeOrchestrator(
        content,
        snapshots,
        source_url=URL,
        persistence_policy=policy,
        retry_base_delay=0.0,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def content():
    mock = AsyncMock(spec=ExaClient)
    mock.get_contents.return_value = PAYLOAD
    return mock


async def test_scrape_once_builds_snapshot(content, tmp_path):
    result = await _orchestrator(content, SnapshotStore(tmp_path)).scrape_once()

    snapshot = result.snapshot
    assert snapshot.metadata.total_items == len(snapshot.faqs) == 5
    assert snapshot.metadata.source_url == URL
    assert snapshot.metadata.scraped_at == FIXED_NOW.isoformat()
    assert all(f.source == URL and f.timestamp == FIXED_NOW.isoformat() for f in snapshot.faqs)
    assert snapshot.category_distribution() == {
        "Trending Articles": 1,
        "Payments": 2,
        "Offer, Rates, & Fees": 1,
        "Account": 1,
    }
    content.get_contents.assert_awaited_once_with([URL], text=True)


async def test_scrape_once_persists_raw_and_processed(content, tmp_path):
    result = await _orchestrator(content, SnapshotStore(tmp_path)).scrape_once(filename="run.json")

    assert result.raw_file is not None and result.raw_file.parent == tmp_path / "raw"
    assert result.processed_file == tmp_path / "scraped" / "run.json"


async def test_scrape_once_without_saving(content, tmp_path):
    result = await _orchestrator(content, SnapshotStore(tmp_path)).scrape_once(
        save_raw=False, save_processed=False
    )

    assert result.raw_file is None and result.processed_file is None
    assert not (tmp_path / "scraped").exists()


async def test_retry_recovers_from_transient_failure(content):
    content.get_contents.side_effect = [ExternalServiceError("exa", "timeout"), PAYLOAD]

    result = await _orchestrator(content).scrape_with_retry(max_retries=3, save_raw=False, save_processed=False)

    assert len(result.snapshot.faqs) == 5
    assert content.get_contents.await_count == 2


async def test_retry_exhausted_raises_scrape_error_with_cause(content):
    last = ExternalServiceError("exa", "still down")
    content.get_contents.side_effect = [
        ExternalServiceError("exa", "down"),
        ExternalServiceError("exa", "down again"),
        last,
    ]

    with pytest.raises(ScrapeError) as exc_info:
        await _orchestrator(content).scrape_with_retry(max_retries=3)

    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is last
    assert content.get_contents.await_count == 3


async def test_empty_page_counts_as_failed_attempt(content):
    content.get_contents.return_value = {"results": []}

    with pytest.raises(ScrapeError) as exc_info:
        await _orchestrator(content).scrape_with_retry(max_retries=2)

    assert exc_info.value.attempts == 2


async def test_client_error_is_not_retried(content):
    content.get_contents.side_effect = ExternalServiceError("exa", "bad key", upstream_status=401)

    with pytest.raises(ScrapeError) as exc_info:
        await _orchestrator(content).scrape_with_retry(max_retries=3)

    assert exc_info.value.attempts == 1


async def test_configuration_error_passes_through(content):
    content.get_contents.side_effect = ConfigurationError("EXA_API_KEY is required")

    with pytest.raises(ConfigurationError):
        await _orchestrator(content).scrape_with_retry(max_retries=3)
    assert content.get_contents.await_count == 1


async def test_persistence_failure_is_logged_under_continue_policy(content):
    snapshots = MagicMock(spec=SnapshotStore)
    snapshots.save_raw.side_effect = SnapshotPersistenceError("disk full")
    snapshots.save_processed.side_effect = SnapshotPersistenceError("disk full")

    result = await _orchestrator(content, snapshots, policy="continue").scrape_once()

    assert result.raw_file is None and result.processed_file is None
    assert len(result.snapshot.faqs) == 5


async def test_persistence_failure_aborts_under_fail_policy(content):
    snapshots = MagicMock(spec=SnapshotStore)
    snapshots.save_raw.side_effect = SnapshotPersistenceError("disk full")

    with pytest.raises(SnapshotPersistenceError):
        await _orchestrator(content, snapshots, policy="fail").scrape_with_retry(max_retries=3)
    assert content.get_contents.await_count == 1


async def test_content_health_delegates(content):
    content.health_check.return_value = False
    assert await _orchestrator(content).content_health() is False
