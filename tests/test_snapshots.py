import json
import os

import pytest

from support_rag_server.core.errors import (
    DataValidationError,
    SnapshotNotFoundError,
    SnapshotPersistenceError,
)
from support_rag_server.ingestion.models import ScrapedFAQItem, SnapshotMetadata, SupportSnapshot
from support_rag_server.ingestion.snapshots import SnapshotStore, file_timestamp


def _snapshot(n: int = 2) -> SupportSnapshot:
    faqs = [
        ScrapedFAQItem(
            id=f"aven_faq_{i}",
            chunk_text=f"Question: Q{i}?\n\nAnswer: A{i}.",
            category="Payments",
            question=f"Q{i}?",
        )
        for i in range(1, n + 1)
    ]
    return SupportSnapshot(
        faqs=faqs,
        metadata=SnapshotMetadata(
            scraped_at="2024-01-01T00:00:00+00:00",
            source_url="https://www.aven.com/support",
            total_items=n,
        ),
    )


def test_file_timestamp_is_filesystem_safe():
    stamp = file_timestamp()
    assert ":" not in stamp and "." not in stamp


def test_processed_snapshot_round_trips_with_id_alias(tmp_path):
    store = SnapshotStore(tmp_path)
    path = store.save_processed(_snapshot(), "run.json")

    assert path.parent == tmp_path / "scraped"
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["faqs"][0]["_id"] == "aven_faq_1"
    assert "source" not in raw["faqs"][0]

    assert store.load(path) == _snapshot()


def test_existing_snapshot_is_never_overwritten(tmp_path):
    store = SnapshotStore(tmp_path)
    store.save_processed(_snapshot(1), "run")

    with pytest.raises(SnapshotPersistenceError):
        store.save_processed(_snapshot(2), "run")

    assert len(store.load(tmp_path / "scraped" / "run.json").faqs) == 1


def test_filename_with_path_is_refused(tmp_path):
    with pytest.raises(DataValidationError):
        SnapshotStore(tmp_path).save_processed(_snapshot(), "../escape.json")


def test_raw_payload_goes_to_raw_bucket(tmp_path):
    path = SnapshotStore(tmp_path).save_raw({"results": []})

    assert path.parent == tmp_path / "raw"
    assert path.name.startswith("aven-support-raw-exa-")
    assert json.loads(path.read_text(encoding="utf-8")) == {"results": []}


def test_latest_picks_newest_by_mtime(tmp_path):
    store = SnapshotStore(tmp_path)
    assert store.latest() is None

    older = store.save_processed(_snapshot(), "a.json")
    newer = store.save_processed(_snapshot(), "b.json")
    os.utime(older, (2_000_000_000, 2_000_000_000))
    os.utime(newer, (1_000_000_000, 1_000_000_000))

    assert store.latest() == older


def test_resolve_relative_to_data_root(tmp_path):
    store = SnapshotStore(tmp_path)
    path = store.save_processed(_snapshot(), "run.json")

    assert store.resolve("scraped/run.json") == path.resolve()


def test_resolve_rejects_missing_and_escaping_paths(tmp_path):
    store = SnapshotStore(tmp_path / "data")

    with pytest.raises(SnapshotNotFoundError):
        store.resolve("scraped/missing.json")
    with pytest.raises(DataValidationError):
        store.resolve("../outside.json")


def test_load_records_accepts_document_or_bare_list(tmp_path):
    store = SnapshotStore(tmp_path)
    doc = tmp_path / "doc.json"
    doc.write_text(json.dumps({"faqs": [{"_id": "x"}]}), encoding="utf-8")
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps([{"_id": "y"}]), encoding="utf-8")

    assert store.load_records(doc) == [{"_id": "x"}]
    assert store.load_records(bare) == [{"_id": "y"}]


def test_load_records_errors(tmp_path):
    store = SnapshotStore(tmp_path)
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"items": []}), encoding="utf-8")

    with pytest.raises(SnapshotNotFoundError):
        store.load_records(tmp_path / "nope.json")
    with pytest.raises(SnapshotPersistenceError):
        store.load_records(broken)
    with pytest.raises(DataValidationError):
        store.load_records(wrong)


def test_load_rejects_malformed_snapshot(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"faqs": [{"_id": "x", "category": "Nope"}]}), encoding="utf-8")

    with pytest.raises(DataValidationError):
        SnapshotStore(tmp_path).load(path)
