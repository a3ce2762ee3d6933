"""
Snapshot Store

Durable, append-only archive of scrape runs. Two buckets live under the data
root:

    raw/      raw content-service payloads, exactly as fetched
    scraped/  validated SupportSnapshot documents

Files are named by UTC timestamp and written with exclusive-create, so an
existing snapshot is never overwritten.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from .models import SupportSnapshot
from ..core.errors import (
    DataValidationError,
    SnapshotNotFoundError,
    SnapshotPersistenceError,
)

logger = logging.getLogger("support.snapshots")

RAW_BUCKET = "raw"
PROCESSED_BUCKET = "scraped"


def file_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp made filesystem-safe (":" and "." become "-")."""
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat().replace(":", "-").replace(".", "-")


class SnapshotStore:
    def __init__(self, root: Union[str, Path], file_prefix: str = "aven-support") -> None:
        self.root = Path(root)
        self.file_prefix = file_prefix

    @property
    def raw_dir(self) -> Path:
        return self.root / RAW_BUCKET

    @property
    def processed_dir(self) -> Path:
        return self.root / PROCESSED_BUCKET

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _write_once(self, path: Path, payload: Any) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except FileExistsError as exc:
            raise SnapshotPersistenceError(
                f"Snapshot already exists and is immutable: {path.name}"
            ) from exc
        except OSError as exc:
            raise SnapshotPersistenceError(
                f"Failed to write snapshot {path.name}: {type(exc).__name__}"
            ) from exc
        return path

    def save_raw(self, payload: Any) -> Path:
        """Persist a raw content-service payload."""
        name = f"{self.file_prefix}-raw-exa-{file_timestamp()}.json"
        path = self._write_once(self.raw_dir / name, payload)
        logger.info("Raw payload saved to: %s", path)
        return path

    def save_processed(
        self,
        snapshot: SupportSnapshot,
        filename: Optional[str] = None,
    ) -> Path:
        """Persist a validated snapshot under a timestamped or given name."""
        name = filename or f"{self.file_prefix}-scraped-{file_timestamp()}.json"
        if Path(name).name != name:
            raise DataValidationError(f"Snapshot filename must not contain a path: {name!r}")
        if not name.endswith(".json"):
            name += ".json"

        path = self._write_once(
            self.processed_dir / name,
            snapshot.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        logger.info("Scraped data saved to: %s", path)
        return path

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def resolve(self, data_file: Union[str, Path]) -> Path:
        """
        Resolve a caller-supplied path against the data root.

        Paths that escape the data root are refused.
        """
        candidate = Path(data_file)
        if not candidate.is_absolute():
            candidate = self.root / candidate

        resolved = candidate.resolve()
        if not resolved.is_relative_to(self.root.resolve()):
            raise DataValidationError(f"Data file outside data directory: {data_file}")
        if not resolved.is_file():
            raise SnapshotNotFoundError(f"Data file not found: {data_file}")
        return resolved

    def latest(self) -> Optional[Path]:
        """Most recently modified processed snapshot, if any."""
        if not self.processed_dir.is_dir():
            return None

        files = sorted(
            self.processed_dir.glob("*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        return files[0] if files else None

    def load_records(self, path: Union[str, Path]) -> List[Any]:
        """
        Load the raw FAQ list from a snapshot file.

        Accepts both the snapshot document ({"faqs": [...], ...}) and a bare
        list of records. Records are returned unvalidated.
        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise SnapshotNotFoundError(f"Data file not found: {path.name}") from exc
        except (OSError, ValueError) as exc:
            raise SnapshotPersistenceError(
                f"Failed to load snapshot {path.name}: {type(exc).__name__}"
            ) from exc

        records = data.get("faqs") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise DataValidationError(f"No FAQ list found in {path.name}")
        return records

    def load(self, path: Union[str, Path]) -> SupportSnapshot:
        """Load a processed snapshot, strictly validated."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as f:
                return SupportSnapshot.model_validate(json.load(f))
        except FileNotFoundError as exc:
            raise SnapshotNotFoundError(f"Data file not found: {path.name}") from exc
        except ValidationError as exc:
            raise DataValidationError(
                f"Malformed snapshot {path.name}: {exc.error_count()} error(s)"
            ) from exc
        except (OSError, ValueError) as exc:
            raise SnapshotPersistenceError(
                f"Failed to load snapshot {path.name}: {type(exc).__name__}"
            ) from exc
