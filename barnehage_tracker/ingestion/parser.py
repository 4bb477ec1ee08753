"""
Availability Page Parser Module
===============================

Turns the municipal "ledige barnehageplasser" page into structured
availability observations.

The page is Norwegian prose inside list items, grouped under one
``h3`` header per district ("bydel"). Extraction is driven by ordered
pattern tables so each rule can be tested and extended on its own:

- SPOT_PATTERN finds spot counts ("2 ledige plasser", "1 småbarnsplass")
- AGE_GROUP_TIERS classify the age group (numeric ranges beat nouns)
- DATE_PATTERN / DATE_FORMATTERS normalise "ledig fra ..." phrases

Malformed content never raises. It is reported as MappingError entries.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from bs4 import BeautifulSoup, Tag

from barnehage_tracker.core.enums import AgeGroup
from barnehage_tracker.ingestion.errors import (
    MappingError,
    field_error,
    no_match_error,
    region_error,
)

logger = logging.getLogger(__name__)

CONTAINER_SELECTOR = ".ods-content"
UNKNOWN_KINDERGARTEN = "Unknown Kindergarten"
NOW = "now"

# One listing on the page is mis-encoded; items containing this glyph are skipped
ANOMALY_SENTINEL = "¨"

MONTHS: dict[str, str] = {
    "januar": "January",
    "februar": "February",
    "mars": "March",
    "april": "April",
    "mai": "May",
    "juni": "June",
    "juli": "July",
    "august": "August",
    "september": "September",
    "oktober": "October",
    "november": "November",
    "desember": "December",
}

_MONTH_NAMES = "|".join(MONTHS)

REGION_HEADER_PATTERN = re.compile(
    r"^Bydel\s+(?P<region>.+?)\s+\(oppdatert\s+(?P<updated>.+?)\)$", re.IGNORECASE
)

# Spot nouns, including age-prefixed compounds
SPOT_NOUNS: tuple[str, ...] = (
    r"småbarnsplass(?:er)?",
    r"småbarnplass(?:er)?",
    r"storebarnsplass(?:er)?",
    r"storbarnsplass(?:er)?",
    r"storebarnplass(?:er)?",
    r"ledige?\s+plass(?:er)?",
    r"plass(?:er)?",
)

SPOT_PATTERN = re.compile(
    r"(?P<count>\d+)\s*(?P<noun>" + "|".join(SPOT_NOUNS) + r")"
    r"|(?P<bare>\bledig\s+plass\b)",
    re.IGNORECASE,
)

# Ordered tiers; within a tier the earliest match in the text wins
AGE_GROUP_TIERS: tuple[tuple[tuple[re.Pattern[str], AgeGroup], ...], ...] = (
    (
        (re.compile(r"(?<!\d)(?:0\s*-\s*3|under\s*3)\s*år\b", re.IGNORECASE), AgeGroup.UNDER_3),
        (re.compile(r"(?<!\d)(?:3\s*-\s*6|over\s*3)\s*år\b", re.IGNORECASE), AgeGroup.OVER_3),
        (re.compile(r"(?<!\d)2\s*-\s*6\s*år\b", re.IGNORECASE), AgeGroup.AGE_2_TO_6),
    ),
    (
        (re.compile(r"småbarn", re.IGNORECASE), AgeGroup.UNDER_3),
        (re.compile(r"sto(?:re|r)?barn", re.IGNORECASE), AgeGroup.OVER_3),
    ),
)

DATE_PATTERN = re.compile(
    r"\b(?:ledig\s+)?fra\s+(?:"
    rf"(?P<day>\d{{1,2}})\.\s*(?P<day_month>{_MONTH_NAMES})\b(?:\s+(?P<day_year>\d{{4}}))?"
    r"|(?P<numeric>\d{1,2}\.\d{1,2}\.\d{4})"
    rf"|(?P<month>{_MONTH_NAMES})\b(?:\s+(?P<year>\d{{4}}))?"
    r"|(?P<now>nå\b|d\.\s?d\.?)"
    r"|(?P<word>[^\W\d_]+)"
    r")",
    re.IGNORECASE,
)


def _format_word(match: re.Match[str], year: int) -> str:
    word = match["word"].lower()
    if word in MONTHS:
        return f"{MONTHS[word]} {year}"
    return word


DateFormatter = Callable[[re.Match[str], int], str]

# First populated group decides how the match is rendered
DATE_FORMATTERS: tuple[tuple[str, DateFormatter], ...] = (
    (
        "day",
        lambda m, year: f"{int(m['day'])} {MONTHS[m['day_month'].lower()]} {m['day_year'] or year}",
    ),
    ("numeric", lambda m, year: m["numeric"]),
    ("month", lambda m, year: f"{MONTHS[m['month'].lower()]} {m['year'] or year}"),
    ("now", lambda m, year: NOW),
    ("word", _format_word),
)


@dataclass
class Observation:
    """One availability listing as scraped from the page."""

    region: str
    last_updated: str
    kindergarten: str
    spots: int
    age_group: AgeGroup
    availability_date: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to the page-facing dictionary form."""
        return {
            "region": self.region,
            "lastUpdated": self.last_updated,
            "kindergarten": self.kindergarten,
            "spots": self.spots,
            "ageGroup": self.age_group.value,
            "availabilityDate": self.availability_date,
        }


@dataclass
class SpotCandidate:
    """A spot-count match inside one listing's detail text."""

    count: int
    start: int
    end: int


@dataclass
class ParseResult:
    """Observations and diagnostics from one page."""

    observations: list[Observation] = field(default_factory=list)
    errors: list[MappingError] = field(default_factory=list)


def normalize_last_updated(value: str) -> str:
    """
    Normalise a header date such as "1. mars 2025" to "1 March 2025".

    Unrecognised shapes are returned unchanged.
    """
    value = re.sub(r"(\d+)\.\s*(\w+)\s+(\d+)", r"\1 \2 \3", value, count=1)
    parts = value.split(" ")
    if len(parts) == 3:
        day, month, year = parts
        return f"{day} {MONTHS.get(month.lower(), month)} {year}"
    return value


def extract_year(value: str) -> int | None:
    """Return the first four-digit year in a string, if any."""
    match = re.search(r"\b(\d{4})\b", value)
    return int(match.group(1)) if match else None


def find_spot_candidates(text: str) -> list[SpotCandidate]:
    """Find every spot-count phrase in the text, left to right."""
    candidates = []
    for match in SPOT_PATTERN.finditer(text):
        count = int(match["count"]) if match["count"] else 1
        candidates.append(SpotCandidate(count=count, start=match.start(), end=match.end()))
    return candidates


def classify_age_group(text: str) -> AgeGroup:
    """
    Classify the age group described in a listing.

    Explicit numeric ranges take precedence over compound nouns such as
    "småbarnsplass". Returns AgeGroup.UNKNOWN when nothing matches.
    """
    for tier in AGE_GROUP_TIERS:
        best: tuple[int, AgeGroup] | None = None
        for pattern, age_group in tier:
            match = pattern.search(text)
            if match and (best is None or match.start() < best[0]):
                best = (match.start(), age_group)
        if best is not None:
            return best[1]
    return AgeGroup.UNKNOWN


def format_date_match(match: re.Match[str], year: int) -> str:
    """Render one DATE_PATTERN match using the formatter table."""
    for group, formatter in DATE_FORMATTERS:
        if match[group]:
            return formatter(match, year)
    return ""


def last_date(text: str, year: int) -> str | None:
    """Return the last availability date phrase in the text, or None."""
    result = None
    for match in DATE_PATTERN.finditer(text):
        result = format_date_match(match, year)
    return result


class AvailabilityPageParser:
    """
    Parses the availability page into observations.

    Each spot candidate gets its own date scan over its text segment
    (from its count phrase up to the next one). A segment without a
    date falls back to the last date in the whole listing, and a
    listing without any date defaults to "now".
    """

    def __init__(self, default_year: int | None = None) -> None:
        self.default_year = default_year or date.today().year

    def parse(self, html: str) -> ParseResult:
        """
        Parse the page markup.

        Args:
            html: Raw page HTML

        Returns:
            ParseResult with observations and diagnostics
        """
        result = ParseResult()
        soup = BeautifulSoup(html, "html.parser")

        container = soup.select_one(CONTAINER_SELECTOR)
        if container is None:
            logger.warning(f"Content container '{CONTAINER_SELECTOR}' not found; nothing to parse")
            return result

        for header in container.find_all("h3"):
            self._parse_region(header, result)

        logger.info(
            f"Parsed {len(result.observations)} observations with {len(result.errors)} errors"
        )
        return result

    def _parse_region(self, header: Tag, result: ParseResult) -> None:
        header_text = " ".join(header.get_text().split())
        match = REGION_HEADER_PATTERN.match(header_text)
        if match is None:
            result.errors.append(region_error(header_text))
            return

        region = match["region"].strip()
        last_updated = normalize_last_updated(match["updated"].strip())
        year = extract_year(last_updated) or self.default_year

        for sibling in header.find_next_siblings():
            if sibling.name == "h3":
                break
            if sibling.name in ("ul", "ol"):
                for item in sibling.find_all("li"):
                    self._parse_item(item, region, last_updated, year, result)

    def _parse_item(
        self,
        item: Tag,
        region: str,
        last_updated: str,
        year: int,
        result: ParseResult,
    ) -> None:
        link = item.find("a")
        if link is not None:
            kindergarten = re.sub(r":$", "", link.get_text().strip())
        else:
            kindergarten = UNKNOWN_KINDERGARTEN
        details = item.get_text().replace(f"{kindergarten}:", "", 1).strip()

        if ANOMALY_SENTINEL in details:
            logger.debug(f"Skipping anomalous listing for {kindergarten}")
            return

        candidates = find_spot_candidates(details)
        if not candidates:
            result.errors.append(no_match_error(kindergarten, region, last_updated, details))
            return

        age_group = classify_age_group(details)
        fallback_date = last_date(details, year)

        for index, candidate in enumerate(candidates):
            segment_end = candidates[index + 1].start if index + 1 < len(candidates) else len(details)
            availability_date = (
                last_date(details[candidate.start : segment_end], year) or fallback_date or NOW
            )

            if age_group == AgeGroup.UNKNOWN or not availability_date:
                result.errors.append(
                    field_error(
                        kindergarten,
                        region,
                        last_updated,
                        {
                            "count": candidate.count,
                            "type": age_group.value,
                            "date": availability_date,
                        },
                    )
                )

            result.observations.append(
                Observation(
                    region=region,
                    last_updated=last_updated,
                    kindergarten=kindergarten,
                    spots=candidate.count,
                    age_group=age_group,
                    availability_date=availability_date,
                )
            )


def parse_availability_page(html: str, default_year: int | None = None) -> ParseResult:
    """Parse the availability page with a fresh parser."""
    return AvailabilityPageParser(default_year=default_year).parse(html)
