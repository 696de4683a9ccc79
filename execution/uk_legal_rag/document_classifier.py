"""
UK Legal Relevance Classifier for Uploaded Documents

Scores arbitrary uploaded text against twelve weighted UK-legal term
categories and decides whether the document is in scope. Pure and
deterministic: no network calls, no state.

Scoring:
    per category: min(distinct term hits, 3) * weight
    +5 breadth bonus at >= 3 matched categories, +10 more at >= 5
    +3 when the filename itself names a legal document kind

Acceptance needs score >= 8 AND a strong UK indicator (a hit in
legislation, legal bodies, geography or currency; or more than two
employment-term hits with more than one legal-concept hit).
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .lexicons import Lexicons
from .legal_patterns import (
    AMOUNT_PATTERN,
    DATE_PATTERN,
    DOCUMENT_TYPE_RULES,
    RELEVANCE_SUGGESTIONS,
    RELEVANCE_WARNINGS,
    SECTION_REFERENCE_PATTERN,
    UNKNOWN_DOCUMENT_TYPE,
)

logger = logging.getLogger(__name__)

RELEVANCE_THRESHOLD = 8
MAX_HITS_PER_CATEGORY = 3
BREADTH_BONUS = 5
WIDE_BREADTH_BONUS = 10
FILENAME_BONUS = 3
MAX_KEY_ELEMENT_VALUES = 3


@dataclass
class RelevanceAssessment:
    """Outcome of classifying one uploaded document."""
    is_relevant: bool
    score: int
    category_hits: dict = field(default_factory=dict)
    categories_matched: int = 0
    has_strong_indicator: bool = False
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_relevant": self.is_relevant,
            "score": self.score,
            "category_hits": dict(self.category_hits),
            "categories_matched": self.categories_matched,
            "has_strong_indicator": self.has_strong_indicator,
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RelevanceAssessment":
        return cls(
            is_relevant=bool(data.get("is_relevant")),
            score=int(data.get("score", 0)),
            category_hits=dict(data.get("category_hits", {})),
            categories_matched=int(data.get("categories_matched", 0)),
            has_strong_indicator=bool(data.get("has_strong_indicator")),
            warnings=list(data.get("warnings", [])),
            suggestions=list(data.get("suggestions", [])),
        )


class LegalRelevanceClassifier:
    """
    Lexicon-weighted UK legal relevance scoring.

    Usage:
        classifier = LegalRelevanceClassifier()
        assessment = classifier.classify(text, "employment_contract.pdf")
        if not assessment.is_relevant:
            print(assessment.warnings)
    """

    def __init__(self, lexicons: Optional[Lexicons] = None, threshold: int = RELEVANCE_THRESHOLD):
        self.lexicons = lexicons or Lexicons()
        self.threshold = threshold

    def classify(self, text: str, filename: str) -> RelevanceAssessment:
        """
        Score a document.

        Args:
            text: Extracted plain text
            filename: Original filename (terms in it count as hits)

        Returns:
            RelevanceAssessment with warnings, and suggestions on rejection
        """
        text_lower = (text or "").lower()
        filename_lower = (filename or "").lower()

        score = 0
        hits = {}
        for category in self.lexicons.relevance_categories:
            matches = [
                term for term in category.terms
                if term in text_lower or term in filename_lower
            ]
            hits[category.name] = len(matches)
            score += min(len(matches), MAX_HITS_PER_CATEGORY) * category.weight

        matched = sum(1 for count in hits.values() if count > 0)
        if matched >= 3:
            score += BREADTH_BONUS
        if matched >= 5:
            score += WIDE_BREADTH_BONUS

        if any(k in filename_lower for k in self.lexicons.filename_keywords):
            score += FILENAME_BONUS

        strong = self._has_strong_indicator(hits)
        is_relevant = score >= self.threshold and strong

        warnings = []
        if score < self.threshold:
            warnings.append(RELEVANCE_WARNINGS["low_score"])
        if not strong:
            warnings.append(RELEVANCE_WARNINGS["no_strong_indicator"])
        if hits.get("document_types", 0) == 0:
            warnings.append(RELEVANCE_WARNINGS["no_document_type"])

        assessment = RelevanceAssessment(
            is_relevant=is_relevant,
            score=score,
            category_hits=hits,
            categories_matched=matched,
            has_strong_indicator=strong,
            warnings=warnings,
            suggestions=[] if is_relevant else list(RELEVANCE_SUGGESTIONS),
        )
        logger.info(
            f"Relevance of {filename}: score={score} categories={matched} "
            f"strong={strong} relevant={is_relevant}"
        )
        return assessment

    def _has_strong_indicator(self, hits: dict) -> bool:
        if any(hits.get(name, 0) > 0 for name in self.lexicons.strong_indicator_categories):
            return True
        return hits.get("employment_terms", 0) > 2 and hits.get("legal_concepts", 0) > 1


def detect_document_type(text: str) -> str:
    """First matching document-type rule, else 'unknown'."""
    text_lower = (text or "").lower()
    for document_type, any_of, all_of in DOCUMENT_TYPE_RULES:
        if any_of and any(p in text_lower for p in any_of):
            return document_type
        if all_of and all(p in text_lower for p in all_of):
            return document_type
    return UNKNOWN_DOCUMENT_TYPE


def extract_key_elements(text: str) -> list[dict]:
    """Monetary amounts, dates and section/clause references, up to three of each."""
    elements = []
    for kind, pattern in (
        ("amounts", AMOUNT_PATTERN),
        ("dates", DATE_PATTERN),
        ("sections", SECTION_REFERENCE_PATTERN),
    ):
        values = pattern.findall(text or "")
        if values:
            elements.append({"type": kind, "values": values[:MAX_KEY_ELEMENT_VALUES]})
    return elements
