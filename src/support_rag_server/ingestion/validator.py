"""
Record Validator

Filters raw FAQ candidates down to well-formed ScrapedFAQItem records.
Filtering is total: invalid records are logged with their position and
dropped, and no exception escapes.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Set

from .extractor import DEFAULT_ID_PREFIX
from .models import SUPPORT_CATEGORIES, ScrapedFAQItem

logger = logging.getLogger("support.validator")


def _as_mapping(record: Any) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return dataclasses.asdict(record)
    if isinstance(record, ScrapedFAQItem):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    return None


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def rejection_reason(record: Any) -> Optional[str]:
    """
    Return why `record` would be rejected, or None if it is acceptable.

    Rules short-circuit in order: structure, chunk_text, category, question.
    """
    data = _as_mapping(record)
    if data is None:
        return "not a structured object"
    if not _non_empty_string(data.get("chunk_text")):
        return "invalid chunk_text"
    if data.get("category") not in SUPPORT_CATEGORIES:
        return f"invalid category {data.get('category')!r}"
    if not _non_empty_string(data.get("question")):
        return "invalid question"
    return None


def _next_free_id(id_prefix: str, position: int, taken: Set[str]) -> str:
    n = position
    while f"{id_prefix}_{n}" in taken:
        n += 1
    return f"{id_prefix}_{n}"


def validate_faqs(
    records: Sequence[Any],
    id_prefix: str = DEFAULT_ID_PREFIX,
) -> List[ScrapedFAQItem]:
    """
    Validate and normalize raw FAQ records.

    Accepts extractor candidates, dicts loaded from snapshot files (with
    `_id` or `id`), or ScrapedFAQItem instances. A missing or non-string id
    is regenerated as `<id_prefix>_<n>`, where n is the record's 1-based
    position among the accepted records, moved past any id already in use.

    Guarantees len(result) <= len(records).
    """
    accepted: List[Dict[str, Any]] = []
    for index, record in enumerate(records):
        reason = rejection_reason(record)
        if reason is not None:
            logger.warning("Rejected FAQ at index %d: %s", index, reason)
            continue
        accepted.append(_as_mapping(record))

    taken: Set[str] = {
        raw_id
        for raw_id in (data.get("_id", data.get("id")) for data in accepted)
        if _non_empty_string(raw_id)
    }

    validated: List[ScrapedFAQItem] = []
    for position, data in enumerate(accepted, start=1):
        raw_id = data.get("_id", data.get("id"))
        if _non_empty_string(raw_id):
            faq_id = raw_id
        else:
            faq_id = _next_free_id(id_prefix, position, taken)
            taken.add(faq_id)

        validated.append(
            ScrapedFAQItem(
                id=faq_id,
                chunk_text=data["chunk_text"].strip(),
                category=data["category"],
                question=data["question"].strip(),
                source=data.get("source") if isinstance(data.get("source"), str) else None,
                timestamp=data.get("timestamp") if isinstance(data.get("timestamp"), str) else None,
            )
        )

    if len(validated) < len(records):
        logger.info(
            "Validation kept %d of %d FAQ records", len(validated), len(records)
        )
    return validated
