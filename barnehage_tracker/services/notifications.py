"""Notification matching for Barnehage Tracker.

Evaluates users' notification preferences against the spots a scrape
run has just discovered. Delivery is handled elsewhere; this service
only decides who would be told about what.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from barnehage_tracker.core.enums import PreferenceType
from barnehage_tracker.core.geo import within_radius
from barnehage_tracker.core.schema import Kindergarten, NotificationPreference, SpotRecord

logger = logging.getLogger(__name__)


@dataclass
class NotificationCandidate:
    """A new spot that satisfies a user's preference."""

    preference: NotificationPreference
    kindergarten: Kindergarten
    spot: SpotRecord

    @property
    def user_id(self) -> str:
        return self.preference.user_id


class NotificationMatcher:
    """Matches enabled preferences against newly discovered spots."""

    def __init__(self, preferences: Iterable[NotificationPreference]):
        self.preferences = [p for p in preferences if p.is_enabled]

    def match(
        self, new_spots: Sequence[tuple[Kindergarten, SpotRecord]]
    ) -> list[NotificationCandidate]:
        """
        Evaluate every enabled preference against every new spot.

        Args:
            new_spots: (kindergarten, spot) pairs appended during a run

        Returns:
            One candidate per matching (preference, spot) pair
        """
        candidates = []
        for kindergarten, spot in new_spots:
            for preference in self.preferences:
                if self.matches(preference, kindergarten, spot):
                    candidates.append(NotificationCandidate(preference, kindergarten, spot))

        if candidates:
            users = {c.user_id for c in candidates}
            logger.info(f"{len(candidates)} notification(s) for {len(users)} user(s)")
        return candidates

    @staticmethod
    def matches(
        preference: NotificationPreference, kindergarten: Kindergarten, spot: SpotRecord
    ) -> bool:
        """
        Check one preference against one spot.

        The preference type selects the primary criterion. An age group
        given on any other preference type narrows the match further.
        """
        params = preference.parameters

        if preference.type == PreferenceType.SPECIFIC_KINDERGARTEN:
            ids = set(params.kindergarten_ids)
            matched = str(kindergarten.id) in ids or kindergarten.orgnr in ids
        elif preference.type == PreferenceType.REGION:
            matched = bool(params.region) and spot.region.casefold() == params.region.casefold()
        elif preference.type == PreferenceType.DISTANCE:
            matched = (
                params.location is not None
                and params.max_distance is not None
                and within_radius(
                    kindergarten.latitude,
                    kindergarten.longitude,
                    params.location[0],
                    params.location[1],
                    params.max_distance,
                )
            )
        elif preference.type == PreferenceType.AGE_GROUP:
            return params.age_group is not None and spot.age_group == params.age_group
        else:
            return False

        if matched and params.age_group is not None:
            return spot.age_group == params.age_group
        return matched
