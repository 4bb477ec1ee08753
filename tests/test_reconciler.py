"""Tests for the availability reconciliation engine."""

import hashlib
from datetime import UTC, datetime, timedelta

import pytest

from barnehage_tracker.core.enums import AgeGroup, ErrorType, SpotStatus
from barnehage_tracker.core.schema import Kindergarten
from barnehage_tracker.ingestion.parser import Observation
from barnehage_tracker.ingestion.reconciler import AvailabilityReconciler, create_spot_id


class InMemoryStore:
    """Registry store keeping deep copies, like a real database would."""

    def __init__(self, kindergartens: list[Kindergarten]) -> None:
        self.kindergartens = {k.id: k.model_copy(deep=True) for k in kindergartens}
        self.saved: list = []

    def find_all(self) -> list[Kindergarten]:
        return [k.model_copy(deep=True) for k in self.kindergartens.values()]

    def save(self, kindergarten: Kindergarten) -> Kindergarten:
        self.kindergartens[kindergarten.id] = kindergarten.model_copy(deep=True)
        self.saved.append(kindergarten.id)
        return kindergarten

    def get(self, kindergarten: Kindergarten) -> Kindergarten:
        return self.kindergartens[kindergarten.id]


class FakeClock:
    """Clock advancing one minute per run."""

    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def tick(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


def observation(
    kindergarten: str = "Eksempel Barnehage",
    spots: int = 2,
    age_group: AgeGroup = AgeGroup.UNDER_3,
    availability_date: str = "now",
) -> Observation:
    return Observation(
        region="Frogner",
        last_updated="1 March 2025",
        kindergarten=kindergarten,
        spots=spots,
        age_group=age_group,
        availability_date=availability_date,
    )


@pytest.fixture
def eksempel() -> Kindergarten:
    return Kindergarten(orgnr="987654321", navn="Eksempel Barnehage")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestSpotIdentity:
    """Tests for the spot fingerprint."""

    def test_deterministic(self) -> None:
        """Test the same triple always yields the same fingerprint."""
        a = create_spot_id("Eksempel Barnehage", AgeGroup.UNDER_3, "now")
        b = create_spot_id("Eksempel Barnehage", AgeGroup.UNDER_3, "now")
        assert a == b
        assert len(a) == 32
        int(a, 16)

    def test_enum_and_value_agree(self) -> None:
        """Test age groups hash by their value."""
        assert create_spot_id("A", AgeGroup.OVER_3, "now") == create_spot_id(
            "A", "over 3 years", "now"
        )

    def test_distinct_triples(self) -> None:
        """Test any differing component changes the fingerprint."""
        base = create_spot_id("A", AgeGroup.UNDER_3, "now")
        assert base != create_spot_id("B", AgeGroup.UNDER_3, "now")
        assert base != create_spot_id("A", AgeGroup.OVER_3, "now")
        assert base != create_spot_id("A", AgeGroup.UNDER_3, "August 2025")

    def test_digest_of_joined_triple(self) -> None:
        """Test the digest is MD5 over the dash-joined triple."""
        expected = hashlib.md5("A-unknown-now".encode("utf-8")).hexdigest()
        assert create_spot_id("A", AgeGroup.UNKNOWN, "now") == expected


class TestReconcile:
    """Tests for history mutations."""

    def test_new_spot_is_appended(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test an unseen listing appends one available record."""
        store = InMemoryStore([eksempel])

        result = AvailabilityReconciler(store, clock).reconcile([observation()])

        history = store.get(eksempel).spot_history
        assert len(history) == 1
        record = history[0]
        assert record.status == SpotStatus.AVAILABLE
        assert record.discovered_at == record.last_seen_at == clock.now
        assert record.region == "Frogner"
        assert record.spots == 2
        assert record.age_group == AgeGroup.UNDER_3
        assert record.availability_date == "now"
        assert record.spot_id == create_spot_id("Eksempel Barnehage", AgeGroup.UNDER_3, "now")

        assert len(result.new_spots) == 1
        assert result.mapping_errors == []
        assert store.saved == [eksempel.id]

    def test_idempotent(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test reconciling the same input twice only refreshes last_seen_at."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile([observation()])
        first_seen = clock.now
        later = clock.tick()
        result = reconciler.reconcile([observation(spots=5)])

        history = store.get(eksempel).spot_history
        assert len(history) == 1
        assert history[0].status == SpotStatus.AVAILABLE
        assert history[0].discovered_at == first_seen
        assert history[0].last_seen_at == later
        assert history[0].spots == 2  # identity already encodes the listing

        assert result.new_spots == []
        assert len(result.refreshed) == 1
        assert result.taken == []

    def test_disappeared_spot_is_taken(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test an empty run retires every available record."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile([observation()])
        later = clock.tick()
        result = reconciler.reconcile([])

        history = store.get(eksempel).spot_history
        assert len(history) == 1
        assert history[0].status == SpotStatus.TAKEN
        assert history[0].last_seen_at == later
        assert len(result.taken) == 1

    def test_taken_never_reverts(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test a reappearing listing appends a new record instead of reviving the old one."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile([observation()])
        clock.tick()
        reconciler.reconcile([])
        clock.tick()
        result = reconciler.reconcile([observation()])

        history = store.get(eksempel).spot_history
        assert [r.status for r in history] == [SpotStatus.TAKEN, SpotStatus.AVAILABLE]
        assert history[0].spot_id == history[1].spot_id
        assert history[1].discovered_at == clock.now
        assert len(result.new_spots) == 1
        assert result.taken == []

    def test_only_unseen_records_are_taken(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test the sweep leaves records seen in this run alone."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile(
            [observation(), observation(age_group=AgeGroup.OVER_3, availability_date="August 2025")]
        )
        clock.tick()
        reconciler.reconcile([observation()])

        statuses = {r.age_group: r.status for r in store.get(eksempel).spot_history}
        assert statuses == {
            AgeGroup.UNDER_3: SpotStatus.AVAILABLE,
            AgeGroup.OVER_3: SpotStatus.TAKEN,
        }

    def test_duplicate_observations_collapse(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test identical observations within one run produce one record."""
        store = InMemoryStore([eksempel])

        result = AvailabilityReconciler(store, clock).reconcile([observation(), observation()])

        assert len(store.get(eksempel).spot_history) == 1
        assert len(result.new_spots) == 1
        assert len(result.refreshed) == 1

    def test_fuzzy_name_resolves_to_canonical(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test the fingerprint uses the registry's canonical name."""
        store = InMemoryStore([eksempel])

        AvailabilityReconciler(store, clock).reconcile([observation(kindergarten="Eksempel Barnehage AS")])

        record = store.get(eksempel).spot_history[0]
        assert record.spot_id == create_spot_id("Eksempel Barnehage", AgeGroup.UNDER_3, "now")

    def test_unmatched_name_is_reported(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test an unresolvable name is dropped with a FuzzyMatchError."""
        store = InMemoryStore([eksempel])

        result = AvailabilityReconciler(store, clock).reconcile(
            [observation(kindergarten="Helt Annen Navn")]
        )

        assert store.get(eksempel).spot_history == []
        assert [e.type for e in result.mapping_errors] == [ErrorType.FUZZY_MATCH_ERROR]
        assert store.saved == []

    def test_untouched_kindergartens_are_not_saved(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test only observed or swept kindergartens are written."""
        other = Kindergarten(orgnr="123456789", navn="Solsikken Barnehage")
        store = InMemoryStore([eksempel, other])

        result = AvailabilityReconciler(store, clock).reconcile(
            [observation(), observation(spots=1, age_group=AgeGroup.OVER_3)]
        )

        assert store.saved == [eksempel.id]
        assert result.saved_count == 1

    def test_kindergarten_saved_once_per_phase(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test a kindergarten is saved after its observations and again only if the sweep changes it."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile([observation(), observation(age_group=AgeGroup.OVER_3)])
        store.saved.clear()
        clock.tick()
        reconciler.reconcile([observation()])

        # once for the refresh, once for the OVER_3 record flipping to taken
        assert store.saved == [eksempel.id, eksempel.id]


class TestEndToEnd:
    """Tests for the documented register-then-disappear scenario."""

    def test_discover_then_take(self, eksempel: Kindergarten, clock: FakeClock) -> None:
        """Test one observation creates one record and an empty run takes it."""
        store = InMemoryStore([eksempel])
        reconciler = AvailabilityReconciler(store, clock)

        reconciler.reconcile([observation()])
        available = store.get(eksempel).available_spots
        assert len(available) == 1

        clock.tick()
        reconciler.reconcile([])
        assert store.get(eksempel).available_spots == []
        assert store.get(eksempel).spot_history[0].status == SpotStatus.TAKEN
