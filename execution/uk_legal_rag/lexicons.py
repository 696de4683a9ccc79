"""
Loadable Heuristic Vocabularies

Bundles the query expansion map, retrieval triggers, query categories and
the weighted upload-relevance lexicon into one object. The defaults come
from legal_patterns; a JSON file can replace any subset of them so the
heuristics can be tuned without touching the scoring code.

JSON layout (every key optional):
    {
        "query_expansions": {"phrase": "expansion", ...},
        "expansion_suffix": "...",
        "category_triggers": {"employment": ["employ", ...], ...},
        "recency_triggers": ["recent", ...],
        "query_categories": {"employment law": ["employ", ...], ...},
        "relevance_categories": {"legislation": {"weight": 5, "terms": [...]}, ...},
        "strong_indicator_categories": ["legislation", ...],
        "filename_keywords": ["contract", ...]
    }
"""

import json
import copy
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

from .legal_patterns import (
    QUERY_EXPANSIONS,
    QUERY_EXPANSION_SUFFIX,
    CATEGORY_TRIGGERS,
    RECENCY_TRIGGERS,
    QUERY_CATEGORIES,
    RELEVANCE_CATEGORIES,
    STRONG_INDICATOR_CATEGORIES,
    FILENAME_KEYWORDS,
)

logger = logging.getLogger(__name__)


@dataclass
class WeightedCategory:
    """A relevance lexicon category: lowercase terms sharing one weight."""
    name: str
    weight: int
    terms: list[str]


@dataclass
class Lexicons:
    """All keyword-driven heuristics used by retrieval and upload classification."""
    query_expansions: dict = field(default_factory=lambda: dict(QUERY_EXPANSIONS))
    expansion_suffix: str = QUERY_EXPANSION_SUFFIX
    category_triggers: dict = field(default_factory=lambda: copy.deepcopy(CATEGORY_TRIGGERS))
    recency_triggers: list = field(default_factory=lambda: list(RECENCY_TRIGGERS))
    query_categories: dict = field(default_factory=lambda: copy.deepcopy(QUERY_CATEGORIES))
    relevance_categories: list = field(default_factory=lambda: _weighted(RELEVANCE_CATEGORIES))
    strong_indicator_categories: tuple = STRONG_INDICATOR_CATEGORIES
    filename_keywords: list = field(default_factory=lambda: list(FILENAME_KEYWORDS))

    @classmethod
    def from_dict(cls, data: dict) -> "Lexicons":
        """Build lexicons from a mapping, keeping defaults for absent keys."""
        lexicons = cls()
        if "query_expansions" in data:
            lexicons.query_expansions = {
                str(k).lower(): str(v) for k, v in data["query_expansions"].items()
            }
        if "expansion_suffix" in data:
            lexicons.expansion_suffix = str(data["expansion_suffix"])
        if "category_triggers" in data:
            lexicons.category_triggers = _lowered_lists(data["category_triggers"])
        if "recency_triggers" in data:
            lexicons.recency_triggers = [str(t).lower() for t in data["recency_triggers"]]
        if "query_categories" in data:
            lexicons.query_categories = _lowered_lists(data["query_categories"])
        if "relevance_categories" in data:
            lexicons.relevance_categories = _weighted(data["relevance_categories"])
        if "strong_indicator_categories" in data:
            lexicons.strong_indicator_categories = tuple(data["strong_indicator_categories"])
        if "filename_keywords" in data:
            lexicons.filename_keywords = [str(k).lower() for k in data["filename_keywords"]]
        return lexicons

    @classmethod
    def from_file(cls, path: str) -> "Lexicons":
        """
        Load lexicons from a JSON file.

        Args:
            path: Path to a JSON file in the layout documented above

        Returns:
            Lexicons with the file's entries replacing the defaults

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a JSON object
        """
        file_path = Path(path)
        with file_path.open(encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Lexicon file {file_path} must contain a JSON object")
        logger.info(f"Loaded lexicon overrides from {file_path}: {sorted(data)}")
        return cls.from_dict(data)

    def category(self, name: str) -> Optional[WeightedCategory]:
        """Look up a relevance category by name."""
        for cat in self.relevance_categories:
            if cat.name == name:
                return cat
        return None


def _weighted(categories: dict) -> list[WeightedCategory]:
    return [
        WeightedCategory(
            name=name,
            weight=int(entry["weight"]),
            terms=[str(t).lower() for t in entry["terms"]],
        )
        for name, entry in categories.items()
    ]


def _lowered_lists(mapping: dict) -> dict:
    return {key: [str(v).lower() for v in values] for key, values in mapping.items()}


def load_lexicons(path: Optional[str] = None) -> Lexicons:
    """Return lexicons from ``path`` when given, else the built-in defaults."""
    if path:
        return Lexicons.from_file(path)
    return Lexicons()
