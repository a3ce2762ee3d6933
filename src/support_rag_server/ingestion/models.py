"""
Ingestion Data Models

This module defines the records produced by one scrape run:

- FAQCandidate: raw extractor output, not yet validated
- ScrapedFAQItem: one validated question/answer unit
- SupportSnapshot: the immutable result of a scrape run, persisted as JSON

The category set is closed. Anything outside SUPPORT_CATEGORIES is rejected
by the validator and never reaches the index.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Final, List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, Field, ConfigDict


SupportCategory = Literal[
    "Trending Articles",
    "Application",
    "Payments",
    "Before You Apply",
    "Offer, Rates, & Fees",
    "Account",
    "Online Notary",
    "Debt Protection",
]

SUPPORT_CATEGORIES: Final[Tuple[str, ...]] = get_args(SupportCategory)


@dataclass(frozen=True)
class FAQCandidate:
    """A question/answer pair as segmented from raw page text."""

    id: str
    chunk_text: str
    category: str
    question: str


class ScrapedFAQItem(BaseModel):
    """
    A single validated FAQ unit.

    Serialized with `_id` as the identifier key so snapshots written by
    earlier runs load unchanged.
    """

    id: str = Field(..., min_length=1, alias="_id")
    chunk_text: str = Field(..., min_length=1)
    category: SupportCategory
    question: str = Field(..., min_length=1)
    source: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )


class SnapshotMetadata(BaseModel):
    scraped_at: str
    source_url: str
    total_items: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class SupportSnapshot(BaseModel):
    """
    The validated output of one scrape run.

    Owned by the run that created it; written once, never mutated.
    """

    faqs: List[ScrapedFAQItem] = Field(default_factory=list)
    metadata: SnapshotMetadata

    model_config = ConfigDict(frozen=True)

    def category_distribution(self) -> Dict[str, int]:
        return category_distribution(self.faqs)


def category_distribution(faqs: List[ScrapedFAQItem]) -> Dict[str, int]:
    """Count FAQs per category, in first-seen order."""
    stats: Dict[str, int] = {}
    for faq in faqs:
        stats[faq.category] = stats.get(faq.category, 0) + 1
    return stats
