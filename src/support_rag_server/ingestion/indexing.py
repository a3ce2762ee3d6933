"""
Embeddings Workflow

Loads a processed snapshot into the vector index:

1. create the index if missing (or delete and recreate it on request)
2. load the named data file, or the newest processed snapshot
3. validate -> convert to upsert records -> batch upsert
4. report batch accounting plus index stats

Records rejected by validation never reach the writer; they are reported
separately as `rejected`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .snapshots import SnapshotStore
from .validator import validate_faqs
from ..core.errors import DataValidationError, SnapshotNotFoundError
from ..store.base import IndexConfig, IndexStats, VectorStoreClient
from ..store.writer import BatchError, IndexWriter, convert_to_upsert_records

logger = logging.getLogger("support.indexing")


@dataclass(frozen=True)
class IngestReport:
    index_name: str
    namespace: str
    data_file: Path
    processed: int
    failed: int
    rejected: int
    processing_time: float
    stats: IndexStats
    errors: List[BatchError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class IndexingService:
    """
    Parameters
    ----------
    store : VectorStoreClient
        Used for index lifecycle and stats.

    writer : IndexWriter
        Used for the batched upsert.

    snapshots : SnapshotStore
        Source of processed snapshot files.

    index_defaults : IndexConfig
        Model, field map and placement for newly created indexes; the name
        is replaced per call.

    recreate_delay : float
        Seconds to wait after deleting an index before recreating it.
    """

    def __init__(
        self,
        store: VectorStoreClient,
        writer: IndexWriter,
        snapshots: SnapshotStore,
        index_defaults: IndexConfig,
        recreate_delay: float = 5.0,
    ) -> None:
        self._store = store
        self._writer = writer
        self._snapshots = snapshots
        self.index_defaults = index_defaults
        self.recreate_delay = recreate_delay

    async def ensure_index(self, index_name: str, force_recreate: bool = False) -> bool:
        """Create `index_name` if needed. Returns True if it was (re)created."""
        exists = await self._store.index_exists(index_name)
        if exists and not force_recreate:
            return False

        if exists:
            logger.info("Deleting existing index %s for recreation", index_name)
            await self._store.delete_index(index_name)
            if self.recreate_delay > 0:
                await asyncio.sleep(self.recreate_delay)

        config = IndexConfig(
            name=index_name,
            model=self.index_defaults.model,
            text_field=self.index_defaults.text_field,
            cloud=self.index_defaults.cloud,
            region=self.index_defaults.region,
            wait_until_ready=self.index_defaults.wait_until_ready,
        )
        await self._store.create_index(config)
        return True

    def resolve_data_file(self, data_file: Optional[str] = None) -> Path:
        if data_file:
            return self._snapshots.resolve(data_file)
        latest = self._snapshots.latest()
        if latest is None:
            raise SnapshotNotFoundError(
                "No data file found. Provide dataFile or run a scrape first."
            )
        return latest

    async def ingest(
        self,
        index_name: str,
        namespace: str,
        data_file: Optional[str] = None,
        force_recreate: bool = False,
        batch_size: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> IngestReport:
        await self.ensure_index(index_name, force_recreate)

        path = self.resolve_data_file(data_file)
        raw_records = self._snapshots.load_records(path)
        if not raw_records:
            raise DataValidationError(f"No FAQ data found in {path.name}")

        faqs = validate_faqs(raw_records)
        if not faqs:
            raise DataValidationError(f"No valid FAQ records in {path.name}")

        records = convert_to_upsert_records(faqs)
        logger.info(
            "Loaded %d FAQs from %s (%d rejected)",
            len(records), path.name, len(raw_records) - len(faqs),
        )

        result = await self._writer.batch_upsert(
            index_name, namespace, records, batch_size=batch_size, deadline=deadline
        )
        stats = await self._store.get_stats(index_name)

        return IngestReport(
            index_name=index_name,
            namespace=namespace,
            data_file=path,
            processed=result.processed_count,
            failed=result.failed_count,
            rejected=len(raw_records) - len(faqs),
            processing_time=result.processing_time,
            stats=stats,
            errors=list(result.errors),
        )
