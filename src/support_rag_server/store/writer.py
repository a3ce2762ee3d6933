"""
Index Writer

Converts validated FAQs into store records and submits them in sequential,
rate-limited batches.

Accounting rules
----------------
- `upsert` never raises for store failures: the batch is reported as failed
  with one structured error entry.
- `batch_upsert` continues after a failed batch; processed_count counts
  only records in batches the store accepted.
- processed_count + failed_count == len(records), always.
- Destructive operations (delete_all, delete_by_ids) propagate errors.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ConfigDict

from .base import UpsertRecord, VectorStoreClient
from ..core.errors import DataValidationError, RateLimitError
from ..core.retry import NO_RETRY, RetryPolicy, retry
from ..ingestion.models import ScrapedFAQItem

logger = logging.getLogger("support.writer")

# Integrated-embedding upserts accept at most this many records per request
EMBEDDING_BATCH_CEILING = 96


# ---------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------

class BatchError(BaseModel):
    code: str
    message: str
    batch_index: Optional[int] = None
    record_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)


class BatchResult(BaseModel):
    success: bool
    processed_count: int = Field(..., ge=0)
    failed_count: int = Field(..., ge=0)
    errors: List[BatchError] = Field(default_factory=list)
    processing_time: float = Field(..., ge=0.0, description="Milliseconds.")

    model_config = ConfigDict(frozen=True)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


# ---------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------

def convert_to_upsert_records(
    faqs: Sequence[ScrapedFAQItem],
    now: Optional[str] = None,
) -> List[UpsertRecord]:
    """
    Map each FAQ one-to-one onto an UpsertRecord.

    Raises
    ------
    DataValidationError
        If two FAQs share an id; the store would silently collapse them.
    """
    seen: Dict[str, int] = {}
    for faq in faqs:
        seen[faq.id] = seen.get(faq.id, 0) + 1
    duplicates = sorted(i for i, n in seen.items() if n > 1)
    if duplicates:
        raise DataValidationError(
            f"Duplicate FAQ ids: {', '.join(duplicates[:10])}",
            context={"duplicates": duplicates},
        )

    default_timestamp = now or datetime.now(timezone.utc).isoformat()
    return [
        UpsertRecord(
            id=faq.id,
            chunk_text=faq.chunk_text,
            category=faq.category,
            question=faq.question,
            source=faq.source,
            timestamp=faq.timestamp or default_timestamp,
            original_text=faq.chunk_text,
        )
        for faq in faqs
    ]


# ---------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------

class IndexWriter:
    """
    Stateless batch-submission driver.

    Parameters
    ----------
    store : VectorStoreClient
        Injected store client.

    retry_policy : RetryPolicy
        Applied to each single batch submission before it is counted as
        failed.

    batch_delay : float
        Seconds to wait between consecutive batches.

    default_batch_size : int
        Used when batch_upsert is called without a size.
    """

    def __init__(
        self,
        store: VectorStoreClient,
        retry_policy: RetryPolicy = NO_RETRY,
        batch_delay: float = 0.1,
        default_batch_size: int = EMBEDDING_BATCH_CEILING,
    ) -> None:
        self._store = store
        self.retry_policy = retry_policy
        self.batch_delay = batch_delay
        self.default_batch_size = default_batch_size

    async def upsert(
        self,
        index_name: str,
        namespace: str,
        records: Sequence[UpsertRecord],
        batch_index: Optional[int] = None,
    ) -> BatchResult:
        """Submit one batch. Store failures are reported, not raised."""
        start = time.perf_counter()
        if not records:
            return BatchResult(
                success=True, processed_count=0, failed_count=0,
                processing_time=_elapsed_ms(start),
            )

        try:
            await retry(
                lambda: self._store.upsert(index_name, namespace, records),
                self.retry_policy,
                label="upsert",
            )
        except Exception as exc:
            code = "RATE_LIMITED" if isinstance(exc, RateLimitError) else "UPSERT_ERROR"
            logger.error(
                "Upsert of %d records to %s/%s failed: %s",
                len(records), index_name, namespace, exc,
            )
            return BatchResult(
                success=False,
                processed_count=0,
                failed_count=len(records),
                errors=[
                    BatchError(
                        code=code,
                        message=str(exc),
                        batch_index=batch_index,
                        record_count=len(records),
                    )
                ],
                processing_time=_elapsed_ms(start),
            )

        logger.info("Upserted %d records to %s/%s", len(records), index_name, namespace)
        return BatchResult(
            success=True,
            processed_count=len(records),
            failed_count=0,
            processing_time=_elapsed_ms(start),
        )

    async def batch_upsert(
        self,
        index_name: str,
        namespace: str,
        records: Sequence[UpsertRecord],
        batch_size: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> BatchResult:
        """
        Submit `records` in sequential chunks of `batch_size`.

        `deadline` is a time.monotonic() value. Once it has passed, no
        further batch is started and the unsent records are counted as
        failed.
        """
        batch_size = batch_size or self.default_batch_size
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_size > EMBEDDING_BATCH_CEILING:
            logger.warning(
                "batch_size %d exceeds the embedding ceiling of %d; the store may reject batches",
                batch_size, EMBEDDING_BATCH_CEILING,
            )

        start = time.perf_counter()
        total_batches = math.ceil(len(records) / batch_size)
        processed = 0
        failed = 0
        errors: List[BatchError] = []

        logger.info(
            "Batch upserting %d records in batches of %d", len(records), batch_size
        )

        for batch_index, offset in enumerate(range(0, len(records), batch_size)):
            if deadline is not None and time.monotonic() >= deadline:
                remaining = len(records) - offset
                logger.warning(
                    "Deadline reached before batch %d/%d; %d records not sent",
                    batch_index + 1, total_batches, remaining,
                )
                failed += remaining
                errors.append(
                    BatchError(
                        code="DEADLINE_EXCEEDED",
                        message=f"{remaining} records not submitted before the deadline",
                        batch_index=batch_index,
                        record_count=remaining,
                    )
                )
                break

            batch = list(records[offset : offset + batch_size])
            logger.info("Processing batch %d/%d", batch_index + 1, total_batches)

            result = await self.upsert(index_name, namespace, batch, batch_index=batch_index)
            processed += result.processed_count
            failed += result.failed_count
            errors.extend(result.errors)

            if offset + batch_size < len(records) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return BatchResult(
            success=not errors,
            processed_count=processed,
            failed_count=failed,
            errors=errors,
            processing_time=_elapsed_ms(start),
        )

    # ------------------------------------------------------------------
    # Reads and destructive operations
    # ------------------------------------------------------------------

    async def get_records(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Stored fields for the ids that exist, in request order."""
        found = await self._store.fetch(index_name, namespace, ids)
        return [{"id": i, **found[i]} for i in ids if i in found]

    async def get_record(
        self,
        index_name: str,
        namespace: str,
        record_id: str,
    ) -> Optional[Dict[str, Any]]:
        records = await self.get_records(index_name, namespace, [record_id])
        return records[0] if records else None

    async def delete_all(self, index_name: str, namespace: str) -> None:
        logger.info("Deleting all records from %s in namespace %s", index_name, namespace)
        await self._store.delete_all(index_name, namespace)

    async def delete_by_ids(
        self,
        index_name: str,
        namespace: str,
        ids: Sequence[str],
    ) -> None:
        logger.info("Deleting %d records from %s/%s", len(ids), index_name, namespace)
        await self._store.delete_by_ids(index_name, namespace, ids)
