"""
Entity Matcher Module
=====================

Resolves the free-text kindergarten names found on the availability
page to registry entries using Dice's coefficient over character
bigrams.

Matching is deliberately literal: case and diacritics are compared as
stored, so the registry and the page must agree on orthography.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from barnehage_tracker.ingestion.errors import MappingError, fuzzy_match_error

logger = logging.getLogger(__name__)

# Tuned against the page's naming conventions; not configurable
MATCH_THRESHOLD = 0.7


@dataclass
class MatchCandidate:
    """Best registry name found for a free-text name."""

    target_name: str | None
    rating: float  # 0.0 - 1.0
    index: int = -1  # position in the known names, -1 when there were none

    @property
    def is_confident(self) -> bool:
        return is_confident(self.rating)


def is_confident(rating: float) -> bool:
    """Check if a similarity rating clears the acceptance threshold."""
    return rating >= MATCH_THRESHOLD


def _bigrams(value: str) -> Counter[str]:
    return Counter(value[i : i + 2] for i in range(len(value) - 1))


def compare_two_strings(first: str, second: str) -> float:
    """
    Calculate Dice's coefficient between two strings.

    Whitespace is ignored; everything else is compared exactly.

    Args:
        first: First string
        second: Second string

    Returns:
        Similarity score between 0.0 and 1.0
    """
    first = "".join(first.split())
    second = "".join(second.split())

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = _bigrams(first)
    second_bigrams = _bigrams(second)
    intersection = sum((first_bigrams & second_bigrams).values())

    return (2.0 * intersection) / (len(first) + len(second) - 2)


class EntityMatcher:
    """
    Finds the closest registry name for a scraped kindergarten name.

    Built once per run over the registry snapshot's names; ties keep
    the earliest name in registry order.
    """

    def __init__(self, known_names: Sequence[str]) -> None:
        self.known_names = list(known_names)

    def find_best_match(self, name: str) -> MatchCandidate:
        """
        Score a name against every known name.

        Args:
            name: Free-text kindergarten name from the page

        Returns:
            The highest scoring candidate (rating 0.0 if none are known)
        """
        best = MatchCandidate(target_name=None, rating=0.0)
        for index, known in enumerate(self.known_names):
            rating = compare_two_strings(name, known)
            if best.index == -1 or rating > best.rating:
                best = MatchCandidate(target_name=known, rating=rating, index=index)
        return best

    def resolve(self, name: str) -> tuple[MatchCandidate | None, MappingError | None]:
        """
        Resolve a name, applying the acceptance threshold.

        Returns:
            (candidate, None) when the match is confident, otherwise
            (None, FuzzyMatchError) naming the best candidate found
        """
        candidate = self.find_best_match(name)
        if candidate.is_confident:
            return candidate, None

        error = fuzzy_match_error(name, candidate.target_name, candidate.rating)
        logger.warning(str(error))
        return None, error
