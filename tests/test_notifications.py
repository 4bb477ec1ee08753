"""Tests for notification preference matching."""

import pytest

from barnehage_tracker.core.enums import AgeGroup, PreferenceType
from barnehage_tracker.core.schema import (
    Kindergarten,
    NotificationPreference,
    PreferenceParameters,
    SpotRecord,
)
from barnehage_tracker.services import NotificationMatcher


@pytest.fixture
def kindergarten() -> Kindergarten:
    return Kindergarten(orgnr="987654321", navn="Eksempel Barnehage", latitude=59.9225, longitude=10.7070)


@pytest.fixture
def spot() -> SpotRecord:
    return SpotRecord(region="Frogner", age_group=AgeGroup.UNDER_3, spot_id="a" * 32)


def preference(type: PreferenceType, user_id: str = "user-1", is_enabled: bool = True, **params) -> NotificationPreference:
    return NotificationPreference(
        user_id=user_id,
        type=type,
        parameters=PreferenceParameters(**params),
        is_enabled=is_enabled,
    )


class TestMatches:
    """Tests for single preference evaluation."""

    def test_specific_kindergarten(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test matching by internal id or orgnr."""
        by_id = preference(PreferenceType.SPECIFIC_KINDERGARTEN, kindergarten_ids=[str(kindergarten.id)])
        by_orgnr = preference(PreferenceType.SPECIFIC_KINDERGARTEN, kindergarten_ids=["987654321"])
        other = preference(PreferenceType.SPECIFIC_KINDERGARTEN, kindergarten_ids=["1"])

        assert NotificationMatcher.matches(by_id, kindergarten, spot)
        assert NotificationMatcher.matches(by_orgnr, kindergarten, spot)
        assert not NotificationMatcher.matches(other, kindergarten, spot)

    def test_region_case_insensitive(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test region names compare without case."""
        assert NotificationMatcher.matches(preference(PreferenceType.REGION, region="frogner"), kindergarten, spot)
        assert not NotificationMatcher.matches(preference(PreferenceType.REGION, region="Sagene"), kindergarten, spot)
        assert not NotificationMatcher.matches(preference(PreferenceType.REGION), kindergarten, spot)

    def test_distance(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test radius containment around the preferred location."""
        near = preference(PreferenceType.DISTANCE, location=[59.925, 10.76], max_distance=5.0)
        far = preference(PreferenceType.DISTANCE, location=[59.925, 10.76], max_distance=1.0)
        incomplete = preference(PreferenceType.DISTANCE, location=[59.925, 10.76])

        assert NotificationMatcher.matches(near, kindergarten, spot)
        assert not NotificationMatcher.matches(far, kindergarten, spot)
        assert not NotificationMatcher.matches(incomplete, kindergarten, spot)

    def test_distance_without_coordinates(self, spot: SpotRecord) -> None:
        """Test kindergartens without coordinates never match a radius."""
        unlocated = Kindergarten(orgnr="1", navn="Uten Kart")
        pref = preference(PreferenceType.DISTANCE, location=[59.9, 10.7], max_distance=100.0)
        assert not NotificationMatcher.matches(pref, unlocated, spot)

    def test_age_group(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test matching by age group alone."""
        assert NotificationMatcher.matches(
            preference(PreferenceType.AGE_GROUP, age_group=AgeGroup.UNDER_3), kindergarten, spot
        )
        assert not NotificationMatcher.matches(
            preference(PreferenceType.AGE_GROUP, age_group=AgeGroup.OVER_3), kindergarten, spot
        )
        assert not NotificationMatcher.matches(preference(PreferenceType.AGE_GROUP), kindergarten, spot)

    def test_age_group_narrows_other_types(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test an age group on a region preference must also match."""
        same = preference(PreferenceType.REGION, region="Frogner", age_group=AgeGroup.UNDER_3)
        different = preference(PreferenceType.REGION, region="Frogner", age_group=AgeGroup.OVER_3)

        assert NotificationMatcher.matches(same, kindergarten, spot)
        assert not NotificationMatcher.matches(different, kindergarten, spot)


class TestNotificationMatcher:
    """Tests for matching a run's new spots."""

    def test_disabled_preferences_are_ignored(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test only enabled preferences are evaluated."""
        matcher = NotificationMatcher(
            [
                preference(PreferenceType.REGION, region="Frogner"),
                preference(PreferenceType.REGION, user_id="user-2", region="Frogner", is_enabled=False),
            ]
        )
        candidates = matcher.match([(kindergarten, spot)])

        assert [c.user_id for c in candidates] == ["user-1"]
        assert candidates[0].kindergarten is kindergarten
        assert candidates[0].spot is spot

    def test_one_candidate_per_pair(self, kindergarten: Kindergarten, spot: SpotRecord) -> None:
        """Test every matching (preference, spot) pair yields a candidate."""
        other_spot = SpotRecord(region="Frogner", age_group=AgeGroup.OVER_3, spot_id="b" * 32)
        matcher = NotificationMatcher(
            [
                preference(PreferenceType.REGION, region="Frogner"),
                preference(PreferenceType.AGE_GROUP, user_id="user-2", age_group=AgeGroup.OVER_3),
            ]
        )

        candidates = matcher.match([(kindergarten, spot), (kindergarten, other_spot)])

        assert [(c.user_id, c.spot.spot_id) for c in candidates] == [
            ("user-1", "a" * 32),
            ("user-1", "b" * 32),
            ("user-2", "b" * 32),
        ]

    def test_no_new_spots(self) -> None:
        """Test an empty run yields no candidates."""
        assert NotificationMatcher([preference(PreferenceType.REGION, region="x")]).match([]) == []
