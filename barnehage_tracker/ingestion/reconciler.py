"""
Availability Reconciliation Module
==================================

Diffs one scrape's observations against the persisted spot history.

The page offers no stable identifier per listing, so a spot is
identified by a fingerprint over (kindergarten name, age group,
availability date). Per run:

1. Resolve each observation to a kindergarten with the EntityMatcher
2. Append a new AVAILABLE record, or refresh last_seen_at of the
   AVAILABLE record that already carries the fingerprint
3. Save every kindergarten touched in step 2 once
4. Flip every AVAILABLE record not seen in this run to TAKEN

History is append-only: records are appended or flipped, never removed.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from barnehage_tracker.core.enums import AgeGroup, SpotStatus
from barnehage_tracker.core.schema import Kindergarten, SpotRecord
from barnehage_tracker.ingestion.errors import MappingError
from barnehage_tracker.ingestion.matcher import EntityMatcher
from barnehage_tracker.ingestion.parser import Observation

logger = logging.getLogger(__name__)


class RegistryStore(Protocol):
    """Durable keyed storage for kindergartens and their history."""

    def find_all(self) -> list[Kindergarten]: ...

    def save(self, kindergarten: Kindergarten) -> Kindergarten: ...


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def create_spot_id(kindergarten_name: str, age_group: AgeGroup | str, availability_date: str) -> str:
    """
    Create the fingerprint identifying a listing across scrape runs.

    Args:
        kindergarten_name: Canonical registry name
        age_group: Age group of the listing
        availability_date: Normalised availability date

    Returns:
        Hex-encoded MD5 digest (128 bits)
    """
    age = age_group.value if isinstance(age_group, AgeGroup) else age_group
    key = f"{kindergarten_name}-{age}-{availability_date}"
    return hashlib.md5(key.encode("utf-8")).hexdigest()


@dataclass
class SpotChange:
    """A history mutation applied during a run."""

    kindergarten: Kindergarten
    spot: SpotRecord


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""

    new_spots: list[SpotChange] = field(default_factory=list)
    refreshed: list[SpotChange] = field(default_factory=list)
    taken: list[SpotChange] = field(default_factory=list)
    mapping_errors: list[MappingError] = field(default_factory=list)
    saved_count: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "new_spots": len(self.new_spots),
            "refreshed_spots": len(self.refreshed),
            "taken_spots": len(self.taken),
            "mapping_errors": len(self.mapping_errors),
            "kindergartens_saved": self.saved_count,
        }


class AvailabilityReconciler:
    """
    Applies one run's observations to the registry.

    The registry snapshot is loaded once per run and mutated in memory
    before being written back one kindergarten at a time.
    """

    def __init__(
        self,
        store: RegistryStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            store: Registry store providing find_all() and save()
            clock: Source of the run timestamp
        """
        self.store = store
        self.clock = clock

    def reconcile(self, observations: Sequence[Observation]) -> ReconciliationResult:
        """
        Reconcile observations against the stored history.

        Args:
            observations: Observations from one scrape, in page order

        Returns:
            ReconciliationResult with applied changes and mapping errors
        """
        now = self.clock()
        result = ReconciliationResult()

        kindergartens = self.store.find_all()
        matcher = EntityMatcher([k.navn for k in kindergartens])

        seen: set[tuple[UUID, str]] = set()
        touched: dict[UUID, Kindergarten] = {}

        logger.info("=== Processing available spots ===")
        for observation in observations:
            candidate, error = matcher.resolve(observation.kindergarten)
            if error is not None:
                result.mapping_errors.append(error)
                continue

            kindergarten = kindergartens[candidate.index]
            spot_id = create_spot_id(
                kindergarten.navn, observation.age_group, observation.availability_date
            )
            seen.add((kindergarten.id, spot_id))

            existing = self._find_available(kindergarten, spot_id)
            if existing is None:
                spot = SpotRecord(
                    region=observation.region,
                    discovered_at=now,
                    last_seen_at=now,
                    spots=observation.spots,
                    age_group=observation.age_group,
                    availability_date=observation.availability_date,
                    status=SpotStatus.AVAILABLE,
                    spot_id=spot_id,
                )
                kindergarten.spot_history.append(spot)
                result.new_spots.append(SpotChange(kindergarten, spot))
                logger.info(
                    f'New spot discovered at "{kindergarten.navn}": '
                    f"{spot.spots} spot(s) for {spot.age_group.value}"
                )
            else:
                existing.last_seen_at = now
                result.refreshed.append(SpotChange(kindergarten, existing))
                logger.debug(
                    f'Updated existing spot at "{kindergarten.navn}": '
                    f"{existing.spots} spot(s) for {existing.age_group.value}"
                )

            touched[kindergarten.id] = kindergarten

        for kindergarten in touched.values():
            self.store.save(kindergarten)
            result.saved_count += 1

        logger.info("=== Processing disappeared spots ===")
        for kindergarten in kindergartens:
            updated = False
            for spot in kindergarten.spot_history:
                if spot.is_available and (kindergarten.id, spot.spot_id) not in seen:
                    spot.status = SpotStatus.TAKEN
                    spot.last_seen_at = now
                    updated = True
                    result.taken.append(SpotChange(kindergarten, spot))
                    logger.info(
                        f'Marked spot as taken at "{kindergarten.navn}": '
                        f"{spot.spots} spot(s) for {spot.age_group.value}"
                    )
            if updated:
                self.store.save(kindergarten)
                result.saved_count += 1

        logger.info(f"Reconciliation complete: {result.summary()}")
        return result

    @staticmethod
    def _find_available(kindergarten: Kindergarten, spot_id: str) -> SpotRecord | None:
        for spot in kindergarten.spot_history:
            if spot.spot_id == spot_id and spot.is_available:
                return spot
        return None
