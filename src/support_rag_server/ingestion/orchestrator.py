"""
Ingestion Orchestrator

Runs one complete scrape cycle (fetch -> extract -> validate -> snapshot)
and retries the whole cycle on failure.

Retry semantics
---------------
- Every attempt re-fetches from scratch; there is no partial resume.
- The delay after failed attempt n is base_delay * 2**n seconds.
- Only retryable errors (see core.errors.is_retryable) trigger another
  attempt. Once the budget is spent a ScrapeError carrying the last cause
  is raised.

Snapshot persistence
--------------------
Whether a failed snapshot write aborts the run is a configuration choice
(`persistence_policy`):

- "continue": log the failure and return the extracted data anyway
- "fail":     raise SnapshotPersistenceError (never retried)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from .extractor import FAQExtractor
from .models import SnapshotMetadata, SupportSnapshot
from .snapshots import SnapshotStore
from .validator import validate_faqs
from ..content.exa_client import ExaClient
from ..core.errors import (
    ConfigurationError,
    DataValidationError,
    ExternalServiceError,
    ScrapeError,
    SnapshotPersistenceError,
)
from ..core.retry import RetryPolicy, retry

logger = logging.getLogger("support.ingestion")

PersistencePolicy = Literal["continue", "fail"]


@dataclass(frozen=True)
class ScrapeResult:
    snapshot: SupportSnapshot
    raw_file: Optional[Path] = None
    processed_file: Optional[Path] = None


class ScrapeOrchestrator:
    """
    Parameters
    ----------
    content_client : ExaClient
        Content-retrieval service client.

    snapshots : Optional[SnapshotStore]
        Where raw payloads and processed snapshots are archived. None
        disables persistence entirely.

    source_url : str
        The single support page to scrape.

    persistence_policy : "continue" | "fail"
        What to do when writing a snapshot fails.

    retry_base_delay : float
        Seconds; see RetryPolicy.base_delay.
    """

    def __init__(
        self,
        content_client: ExaClient,
        snapshots: Optional[SnapshotStore],
        source_url: str,
        extractor: Optional[FAQExtractor] = None,
        persistence_policy: PersistencePolicy = "continue",
        retry_base_delay: float = 1.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._content = content_client
        self._snapshots = snapshots
        self.source_url = source_url
        self._extractor = extractor or FAQExtractor()
        self.persistence_policy = persistence_policy
        self.retry_base_delay = retry_base_delay
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def scrape_once(
        self,
        save_raw: bool = True,
        save_processed: bool = True,
        filename: Optional[str] = None,
    ) -> ScrapeResult:
        """Run a single fetch/extract/validate cycle with no retrying."""
        logger.info("Starting support page scrape: %s", self.source_url)

        payload = await self._content.get_contents([self.source_url], text=True)

        raw_file = None
        if save_raw:
            raw_file = self._persist(lambda store: store.save_raw(payload))

        text = self._page_text(payload)
        logger.info("Retrieved %d characters of raw text", len(text))

        candidates = self._extractor.extract(text)
        scraped_at = self._clock().isoformat()
        faqs = [
            faq.model_copy(update={"source": self.source_url, "timestamp": scraped_at})
            for faq in validate_faqs(candidates, id_prefix=self._extractor.id_prefix)
        ]

        snapshot = SupportSnapshot(
            faqs=faqs,
            metadata=SnapshotMetadata(
                scraped_at=scraped_at,
                source_url=self.source_url,
                total_items=len(faqs),
            ),
        )

        logger.info("Successfully scraped %d FAQ items", len(faqs))
        logger.info("Category distribution: %s", snapshot.category_distribution())

        processed_file = None
        if save_processed:
            processed_file = self._persist(
                lambda store: store.save_processed(snapshot, filename)
            )

        return ScrapeResult(snapshot, raw_file=raw_file, processed_file=processed_file)

    async def scrape_with_retry(
        self,
        max_retries: int = 3,
        save_raw: bool = True,
        save_processed: bool = True,
        filename: Optional[str] = None,
    ) -> ScrapeResult:
        """
        Run `scrape_once` up to `max_retries` times.

        Raises
        ------
        ScrapeError
            When every attempt failed with a retryable error, or the first
            non-retryable external failure. `last_error` holds the cause.
        """
        policy = RetryPolicy(max_attempts=max_retries, base_delay=self.retry_base_delay)
        attempts = 0

        async def attempt() -> ScrapeResult:
            nonlocal attempts
            attempts += 1
            return await self.scrape_once(save_raw, save_processed, filename)

        try:
            return await retry(attempt, policy, label="scrape")
        except (ConfigurationError, DataValidationError, SnapshotPersistenceError):
            raise
        except Exception as exc:
            logger.error("Support page scraping failed after %d attempt(s): %s", attempts, exc)
            raise ScrapeError(attempts, exc) from exc

    async def content_health(self) -> bool:
        return await self._content.health_check()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _page_text(self, payload: Any) -> str:
        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            raise ExternalServiceError("exa", f"no content retrieved from {self.source_url}")

        text = results[0].get("text") if isinstance(results[0], dict) else None
        if not text:
            raise ExternalServiceError("exa", f"no text content retrieved from {self.source_url}")
        return text

    def _persist(self, write: Callable[[SnapshotStore], Path]) -> Optional[Path]:
        if self._snapshots is None:
            return None
        try:
            return write(self._snapshots)
        except SnapshotPersistenceError:
            if self.persistence_policy == "fail":
                raise
            logger.exception("Snapshot persistence failed; continuing without it")
            return None
