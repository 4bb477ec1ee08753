"""Tests for the availability page parser."""

import pytest

from barnehage_tracker.core.enums import AgeGroup, ErrorType
from barnehage_tracker.ingestion.parser import (
    UNKNOWN_KINDERGARTEN,
    AvailabilityPageParser,
    classify_age_group,
    find_spot_candidates,
    last_date,
    normalize_last_updated,
    parse_availability_page,
)


def page(*sections: str) -> str:
    """Wrap region sections in the page's content container."""
    body = "\n".join(sections)
    return f"<html><body><nav><h3>Meny</h3></nav><div class='ods-content'>{body}</div></body></html>"


def region(header: str, *items: str) -> str:
    lis = "".join(f"<li>{item}</li>" for item in items)
    return f"<h3>{header}</h3><p>Oversikt over ledige plasser.</p><ul>{lis}</ul>"


def listing(name: str, details: str) -> str:
    return f"<a href='/barnehage/{name}'>{name}:</a> {details}"


FROGNER = "Bydel Frogner (oppdatert 1. mars 2025)"


class TestEndToEnd:
    """Tests for the documented single-listing page."""

    def test_frogner_page(self) -> None:
        """Test the reference page parses to exactly one observation."""
        html = page(
            region(
                FROGNER,
                listing(
                    "Eksempel Barnehage",
                    "2 ledige plasser for barn i alderen 0-3 år, ledig fra nå",
                ),
            )
        )

        result = parse_availability_page(html)

        assert result.errors == []
        assert [o.to_dict() for o in result.observations] == [
            {
                "region": "Frogner",
                "lastUpdated": "1 March 2025",
                "kindergarten": "Eksempel Barnehage",
                "spots": 2,
                "ageGroup": "under 3 years",
                "availabilityDate": "now",
            }
        ]

    def test_missing_container(self) -> None:
        """Test a page without the content container yields nothing."""
        result = parse_availability_page("<html><body><h3>Bydel Frogner</h3></body></html>")
        assert result.observations == []
        assert result.errors == []


class TestRegions:
    """Tests for region header handling."""

    def test_malformed_header_skips_region_only(self) -> None:
        """Test a header without update date is reported and its listings skipped."""
        html = page(
            region("Bydel Gamle Oslo", listing("Skippet Barnehage", "1 ledig plass for småbarn")),
            region(FROGNER, listing("Eksempel Barnehage", "1 småbarnsplass ledig fra nå")),
        )

        result = parse_availability_page(html)

        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.type == ErrorType.REGION_ERROR
        assert error.to_dict()["content"] == "Bydel Gamle Oslo"
        assert [o.kindergarten for o in result.observations] == ["Eksempel Barnehage"]
        assert result.observations[0].region == "Frogner"

    def test_listings_belong_to_preceding_header(self) -> None:
        """Test the sibling walk stops at the next region header."""
        html = page(
            region(FROGNER, listing("Frogner Barnehage", "1 ledig plass for barn 0-3 år")),
            region(
                "Bydel Grünerløkka (oppdatert 3. februar 2025)",
                listing("Løkka Barnehage", "2 ledige plasser for barn 3-6 år"),
            ),
        )

        result = parse_availability_page(html)

        regions = {o.kindergarten: (o.region, o.last_updated) for o in result.observations}
        assert regions == {
            "Frogner Barnehage": ("Frogner", "1 March 2025"),
            "Løkka Barnehage": ("Grünerløkka", "3 February 2025"),
        }

    def test_header_whitespace_is_collapsed(self) -> None:
        """Test headers broken over several lines still match."""
        html = page(
            region(
                "Bydel\n  Frogner\n (oppdatert 1. mars 2025)",
                listing("Eksempel Barnehage", "1 ledig plass for småbarn"),
            )
        )
        result = parse_availability_page(html)
        assert result.errors == []
        assert result.observations[0].region == "Frogner"

    def test_header_case_insensitive(self) -> None:
        """Test the header pattern ignores case."""
        html = page(region("BYDEL Frogner (Oppdatert 1. mars 2025)", listing("A Barnehage", "1 ledig plass for småbarn")))
        result = parse_availability_page(html)
        assert result.observations[0].region == "Frogner"

    def test_normalize_last_updated(self) -> None:
        """Test month names are translated and other parts pass through."""
        assert normalize_last_updated("1. mars 2025") == "1 March 2025"
        assert normalize_last_updated("15. desember 2024") == "15 December 2024"
        assert normalize_last_updated("i går") == "i går"


class TestListings:
    """Tests for listing-level extraction and diagnostics."""

    def test_anomalous_listing_is_silently_skipped(self) -> None:
        """Test listings containing the sentinel glyph produce neither data nor errors."""
        html = page(
            region(
                FROGNER,
                listing("Rar Barnehage", "2 ledige plasser ¨ for barn 0-3 år"),
                listing("Eksempel Barnehage", "1 ledig plass for barn 3-6 år"),
            )
        )

        result = parse_availability_page(html)

        assert result.errors == []
        assert [o.kindergarten for o in result.observations] == ["Eksempel Barnehage"]

    def test_no_spot_pattern(self) -> None:
        """Test a listing without a spot count is dropped with a NoMatchError."""
        html = page(region(FROGNER, listing("Eksempel Barnehage", "ta kontakt for informasjon")))

        result = parse_availability_page(html)

        assert result.observations == []
        assert len(result.errors) == 1
        error = result.errors[0].to_dict()
        assert error["type"] == "NoMatchError"
        assert error["message"] == "No matches found"
        assert error["kindergarten"] == "Eksempel Barnehage"
        assert error["region"] == "Frogner"
        assert error["lastUpdated"] == "1 March 2025"
        assert error["details"] == "ta kontakt for informasjon"

    def test_unknown_age_group_is_flagged_but_kept(self) -> None:
        """Test an unknown age group emits a FieldError alongside the observation."""
        html = page(region(FROGNER, listing("Eksempel Barnehage", "1 plass ledig fra august")))

        result = parse_availability_page(html)

        assert len(result.observations) == 1
        observation = result.observations[0]
        assert observation.age_group == AgeGroup.UNKNOWN
        assert observation.availability_date == "August 2025"

        assert len(result.errors) == 1
        error = result.errors[0].to_dict()
        assert error["type"] == "FieldError"
        assert error["field"] == {"count": 1, "type": "unknown", "date": "August 2025"}

    def test_listing_without_link(self) -> None:
        """Test a listing without an anchor still yields counts under a placeholder name."""
        html = page(region(FROGNER, "1 ledig plass for barn 0-3 år"))

        result = parse_availability_page(html)

        assert len(result.observations) == 1
        assert result.observations[0].kindergarten == UNKNOWN_KINDERGARTEN

    def test_multiple_candidates_get_their_own_dates(self) -> None:
        """Test each spot count picks the date following it."""
        html = page(
            region(
                FROGNER,
                listing(
                    "Eksempel Barnehage",
                    "1 småbarnsplass ledig fra august og 2 storebarnsplasser ledig fra september",
                ),
            )
        )

        result = parse_availability_page(html)

        assert [(o.spots, o.availability_date) for o in result.observations] == [
            (1, "August 2025"),
            (2, "September 2025"),
        ]

    def test_segment_without_date_uses_last_date(self) -> None:
        """Test a candidate whose segment has no date falls back to the listing's last date."""
        html = page(
            region(
                FROGNER,
                listing("Eksempel Barnehage", "ledig fra oktober: 1 småbarnsplass og 1 storebarnsplass"),
            )
        )

        result = parse_availability_page(html)

        assert [o.availability_date for o in result.observations] == [
            "October 2025",
            "October 2025",
        ]

    def test_default_year_without_header_year(self) -> None:
        """Test the parser's default year applies when the header has no year."""
        html = page(
            region(
                "Bydel Frogner (oppdatert i dag)",
                listing("Eksempel Barnehage", "1 småbarnsplass ledig fra januar"),
            )
        )

        result = AvailabilityPageParser(default_year=2031).parse(html)

        assert result.observations[0].availability_date == "January 2031"


class TestSpotCandidates:
    """Tests for the spot-count pattern table."""

    @pytest.mark.parametrize(
        "text,counts",
        [
            ("2 ledige plasser", [2]),
            ("1 ledig plass", [1]),
            ("3 plasser", [3]),
            ("1 småbarnsplass", [1]),
            ("2 småbarnplasser", [2]),
            ("1 storebarnsplass", [1]),
            ("4 storbarnsplasser", [4]),
            ("Ledig plass for småbarn", [1]),
            ("1 småbarnsplass og 2 storebarnsplasser", [1, 2]),
            ("ingen ledige", []),
        ],
    )
    def test_counts(self, text: str, counts: list[int]) -> None:
        """Test counts recognised from Norwegian spot phrases."""
        assert [c.count for c in find_spot_candidates(text)] == counts


class TestAgeGroups:
    """Tests for age group classification."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("barn i alderen 0-3 år", AgeGroup.UNDER_3),
            ("barn under 3 år", AgeGroup.UNDER_3),
            ("barn 3-6 år", AgeGroup.OVER_3),
            ("barn over 3 år", AgeGroup.OVER_3),
            ("barn 2-6 år", AgeGroup.AGE_2_TO_6),
            ("1 småbarnsplass", AgeGroup.UNDER_3),
            ("1 storebarnsplass", AgeGroup.OVER_3),
            ("1 storbarnsplass", AgeGroup.OVER_3),
            ("1 plass", AgeGroup.UNKNOWN),
        ],
    )
    def test_classification(self, text: str, expected: AgeGroup) -> None:
        """Test each rule in the pattern table."""
        assert classify_age_group(text) == expected

    def test_numeric_range_beats_noun(self) -> None:
        """Test explicit ranges take precedence over compound nouns."""
        assert classify_age_group("1 storebarnsplass for barn 2-6 år") == AgeGroup.AGE_2_TO_6
        assert classify_age_group("1 småbarnsplass (barn 3-6 år)") == AgeGroup.OVER_3

    def test_ranges_are_not_read_inside_numbers(self) -> None:
        """Test '10-3 år' is not mistaken for '0-3 år'."""
        assert classify_age_group("barn 10-3 år") == AgeGroup.UNKNOWN


class TestDates:
    """Tests for availability date normalisation."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("ledig fra nå", "now"),
            ("ledig fra d.d.", "now"),
            ("ledig fra august", "August 2025"),
            ("fra august 2026", "August 2026"),
            ("ledig fra 1. august", "1 August 2025"),
            ("ledig fra 15. januar 2026", "15 January 2026"),
            ("ledig fra 01.08.2025", "01.08.2025"),
            ("ledig fra høsten", "høsten"),
        ],
    )
    def test_formats(self, text: str, expected: str) -> None:
        """Test each date shape in the formatter table."""
        assert last_date(text, 2025) == expected

    def test_last_match_wins(self) -> None:
        """Test the last date phrase in text order is used."""
        assert last_date("ledig fra august, eventuelt fra september", 2025) == "September 2025"

    def test_no_date(self) -> None:
        """Test text without a date phrase yields None."""
        assert last_date("2 ledige plasser", 2025) is None

    def test_listing_without_date_defaults_to_now(self) -> None:
        """Test observations default to 'now' when no date is given."""
        html = page(region(FROGNER, listing("Eksempel Barnehage", "2 ledige plasser for barn 3-6 år")))
        result = parse_availability_page(html)
        assert result.observations[0].availability_date == "now"
        assert result.errors == []
