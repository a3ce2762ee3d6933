"""
FAQ Extractor

Turns the raw text of the support page into category-tagged question/answer
candidates.

Page structure assumed
----------------------
- An introductory "## How can we help?" heading precedes the FAQ content.
- Each category is introduced by a level-5 ("#####") heading.
- Each question is a "- " bullet whose text contains a "?"; the answer
  follows, sometimes on the same visual line.

The extractor never raises on malformed input. Anything it cannot segment is
skipped and logged.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Final, List, Optional

from .models import FAQCandidate, SupportCategory

logger = logging.getLogger("support.extractor")


# ---------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------

INTRO_MARKER = re.compile(r"## How can we help\?", re.IGNORECASE)

BOILERPLATE_PATTERNS: Final = (
    re.compile(r"SHOW MORE"),
    re.compile(r"!\[.*?\]\(.*?\)"),
    re.compile(r"\[iframe\].*?(?:\n|$)"),
)

# re.split with one capture group yields [preamble, heading, body, heading, body, ...]
SECTION_HEADING = re.compile(r"#####[\s\S]*?(.*?)\n")

# Split before a "- " bullet that carries a question, even mid-paragraph
QA_BOUNDARY = re.compile(r"\n\s*(?=-\s+[^\n]+\?)")

BULLET_PREFIX = re.compile(r"-\s*")
MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
WHITESPACE_RUN = re.compile(r"\s+")

# Headings on the page -> canonical category. Unknown headings are ignored.
CATEGORY_HEADINGS: Final[Dict[str, SupportCategory]] = {
    "Trending Articles": "Trending Articles",
    "Payments": "Payments",
    "Before You Apply": "Before You Apply",
    "Offer, Rates & Fees": "Offer, Rates, & Fees",
    "Application": "Application",
    "Account": "Account",
    "Online Notary": "Online Notary",
    "Debt Protection": "Debt Protection",
}

DEFAULT_ID_PREFIX = "aven_faq"


class FAQExtractor:
    """
    Stateless text-to-FAQ segmenter.

    Ids are assigned sequentially per call to `extract`, so the same input
    always yields the same ids.
    """

    def __init__(
        self,
        id_prefix: str = DEFAULT_ID_PREFIX,
        min_question_length: int = 5,
        min_answer_length: int = 5,
        category_headings: Optional[Dict[str, SupportCategory]] = None,
    ) -> None:
        self.id_prefix = id_prefix
        self.min_question_length = min_question_length
        self.min_answer_length = min_answer_length
        self.category_headings = dict(category_headings or CATEGORY_HEADINGS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, text: str) -> List[FAQCandidate]:
        """
        Extract FAQ candidates from raw page text.

        Returns an empty list when the introductory marker is missing or no
        recognized category heading is present.
        """
        main_content = self._main_content(text or "")
        if not main_content:
            logger.info("Intro marker not found; no FAQ content extracted")
            return []

        clean_text = self._strip_boilerplate(main_content)
        sections = SECTION_HEADING.split(clean_text)

        faqs: List[FAQCandidate] = []
        counter = 1

        for i in range(1, len(sections), 2):
            heading = sections[i].strip()
            body = sections[i + 1] if i + 1 < len(sections) else ""
            category = self.category_headings.get(heading)

            if category is None:
                logger.debug("Skipping unrecognized heading %r", heading)
                continue

            for question, answer in self._split_pairs(body):
                if (
                    len(question) <= self.min_question_length
                    or len(answer) <= self.min_answer_length
                ):
                    logger.debug(
                        "Dropping short pair in %s: question=%r", category, question
                    )
                    continue

                faqs.append(
                    FAQCandidate(
                        id=f"{self.id_prefix}_{counter}",
                        chunk_text=f"Question: {question}\n\nAnswer: {answer}",
                        category=category,
                        question=question,
                    )
                )
                counter += 1

        logger.info("Extracted %d FAQ items from raw text", len(faqs))
        return faqs

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _main_content(text: str) -> str:
        parts = INTRO_MARKER.split(text)
        return parts[1] if len(parts) > 1 else ""

    @staticmethod
    def _strip_boilerplate(text: str) -> str:
        for pattern in BOILERPLATE_PATTERNS:
            text = pattern.sub("", text)
        return text

    @staticmethod
    def _clean_answer(answer: str) -> str:
        answer = MARKDOWN_LINK.sub(r"\1", answer)
        return WHITESPACE_RUN.sub(" ", answer).strip()

    def _split_pairs(self, body: str) -> List[tuple]:
        """
        Split a category body into (question, answer) pairs.

        The question ends at the first "?" of the chunk, not at the end of
        the line, because answers sometimes share the question's line.
        """
        pairs = []
        for chunk in QA_BOUNDARY.split(body.strip()):
            mark = chunk.find("?")
            if mark == -1:
                continue

            question = BULLET_PREFIX.sub("", chunk[: mark + 1], count=1).strip()
            answer = self._clean_answer(chunk[mark + 1 :])
            pairs.append((question, answer))
        return pairs
