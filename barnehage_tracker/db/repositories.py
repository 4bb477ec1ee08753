"""Repository classes for database operations."""

import json
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from barnehage_tracker.core.enums import AgeGroup, PreferenceType, SpotStatus
from barnehage_tracker.core.geo import within_radius
from barnehage_tracker.core.schema import (
    Kindergarten,
    NotificationPreference,
    PreferenceParameters,
    SpotRecord,
)
from barnehage_tracker.db.models import (
    KindergartenDB,
    NotificationPreferenceDB,
    SpotRecordDB,
)

# Columns stored outside details_json
_KINDERGARTEN_COLUMNS = {
    "id",
    "orgnr",
    "navn",
    "latitude",
    "longitude",
    "fylkesnummer",
    "kommunenummer",
    "spot_history",
    "created_at",
    "updated_at",
}


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class KindergartenRepository:
    """
    Repository for kindergartens and their spot history.

    This is the registry store consumed by the reconciliation engine:
    find_all() loads a snapshot, save() persists one kindergarten's
    full state. With autocommit=True every save is committed on its own.
    """

    def __init__(self, session: Session, autocommit: bool = False):
        self.session = session
        self.autocommit = autocommit

    def find_all(self) -> list[Kindergarten]:
        """Load every kindergarten with its full history."""
        stmt = (
            select(KindergartenDB)
            .options(selectinload(KindergartenDB.spot_history))
            .order_by(KindergartenDB.navn)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(k) for k in result]

    def get_by_id(self, kindergarten_id: UUID | str) -> Kindergarten | None:
        """Get a kindergarten by internal ID."""
        db_item = self._get_db(kindergarten_id)
        return self._to_domain(db_item) if db_item else None

    def get_by_orgnr(self, orgnr: str) -> Kindergarten | None:
        """Get a kindergarten by organisation number."""
        stmt = select(KindergartenDB).where(KindergartenDB.orgnr == orgnr)
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def count(self) -> int:
        """Get total count of kindergartens."""
        stmt = select(func.count()).select_from(KindergartenDB)
        return self.session.execute(stmt).scalar() or 0

    def save(self, kindergarten: Kindergarten) -> Kindergarten:
        """
        Insert or update a kindergarten keyed by its internal ID.

        History rows are matched by position: existing rows are updated
        in place and new entries are appended. Rows are never deleted.
        """
        db_item = self._get_db(kindergarten.id)
        if db_item is None:
            db_item = KindergartenDB(id=str(kindergarten.id), created_at=kindergarten.created_at)
            self.session.add(db_item)

        self._apply_fields(db_item, kindergarten)
        db_item.updated_at = _utc_now()

        existing = list(db_item.spot_history)
        for position, spot in enumerate(kindergarten.spot_history):
            if position < len(existing):
                row = existing[position]
            else:
                row = SpotRecordDB(kindergarten_id=db_item.id, position=position)
                db_item.spot_history.append(row)
            self._apply_spot(row, spot)

        self._flush()
        return self._to_domain(db_item)

    def upsert_from_bootstrap(self, kindergarten: Kindergarten) -> Kindergarten:
        """
        Insert or update a kindergarten keyed by orgnr.

        Descriptive attributes are replaced wholesale; the stored
        identity and spot history are preserved.
        """
        stmt = select(KindergartenDB).where(KindergartenDB.orgnr == kindergarten.orgnr)
        db_item = self.session.execute(stmt).scalar_one_or_none()
        if db_item is None:
            return self.save(kindergarten)

        self._apply_fields(db_item, kindergarten)
        db_item.updated_at = _utc_now()
        self._flush()
        return self._to_domain(db_item)

    def search(
        self,
        region: str | None = None,
        age_group: AgeGroup | str | None = None,
        has_availability: bool = False,
        availability_date: str | None = None,
        near: tuple[float, float] | None = None,
        max_distance_km: float | None = None,
        limit: int | None = 20,
        offset: int = 0,
    ) -> tuple[list[Kindergarten], int]:
        """
        Search kindergartens by spot history and location.

        Spot filters must all hold for the same history record.

        Args:
            region: Region name of a spot record
            age_group: Age group of a spot record
            has_availability: Require the record to be AVAILABLE
            availability_date: Availability date of a spot record
            near: (latitude, longitude) centre for a radius search
            max_distance_km: Radius for the search around near
            limit: Page size (None for no limit)
            offset: Number of results to skip

        Returns:
            Tuple of (page of kindergartens, total matching count)
        """
        stmt = select(KindergartenDB)

        spot_conditions = []
        if region:
            spot_conditions.append(SpotRecordDB.region == region)
        if age_group:
            spot_conditions.append(SpotRecordDB.age_group == AgeGroup(age_group).value)
        if has_availability:
            spot_conditions.append(SpotRecordDB.status == SpotStatus.AVAILABLE.value)
        if availability_date:
            spot_conditions.append(SpotRecordDB.availability_date == availability_date)

        if spot_conditions:
            stmt = stmt.where(
                KindergartenDB.id.in_(
                    select(SpotRecordDB.kindergarten_id).where(*spot_conditions)
                )
            )
        count_stmt = select(func.count()).select_from(stmt.subquery())
        stmt = stmt.options(selectinload(KindergartenDB.spot_history)).order_by(KindergartenDB.navn)

        if near is not None and max_distance_km is not None:
            # Radius containment is evaluated in Python over stored coordinates
            candidates = self.session.execute(stmt).scalars().all()
            matching = [
                k
                for k in candidates
                if within_radius(k.latitude, k.longitude, near[0], near[1], max_distance_km)
            ]
            end = offset + limit if limit is not None else None
            page = matching[offset:end]
            return [self._to_domain(k) for k in page], len(matching)

        total = self.session.execute(count_stmt).scalar() or 0
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt.offset(offset)).scalars().all()
        return [self._to_domain(k) for k in result], total

    def _get_db(self, kindergarten_id: UUID | str) -> KindergartenDB | None:
        stmt = select(KindergartenDB).where(KindergartenDB.id == str(kindergarten_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _flush(self) -> None:
        self.session.flush()
        if self.autocommit:
            self.session.commit()

    @staticmethod
    def _apply_fields(db_item: KindergartenDB, kindergarten: Kindergarten) -> None:
        db_item.orgnr = kindergarten.orgnr
        db_item.navn = kindergarten.navn
        db_item.latitude = kindergarten.latitude
        db_item.longitude = kindergarten.longitude
        db_item.fylkesnummer = kindergarten.fylkesnummer
        db_item.kommunenummer = kindergarten.kommunenummer
        db_item.details_json = json.dumps(
            kindergarten.model_dump(mode="json", exclude=_KINDERGARTEN_COLUMNS)
        )

    @staticmethod
    def _apply_spot(row: SpotRecordDB, spot: SpotRecord) -> None:
        row.region = spot.region
        row.discovered_at = spot.discovered_at
        row.last_seen_at = spot.last_seen_at
        row.spots = spot.spots
        row.age_group = spot.age_group.value
        row.availability_date = spot.availability_date
        row.status = spot.status.value
        row.spot_id = spot.spot_id

    def _to_domain(self, db_item: KindergartenDB) -> Kindergarten:
        """Convert DB model to domain model."""
        details = json.loads(db_item.details_json) if db_item.details_json else {}
        return Kindergarten(
            id=UUID(db_item.id),
            orgnr=db_item.orgnr,
            navn=db_item.navn,
            latitude=db_item.latitude,
            longitude=db_item.longitude,
            fylkesnummer=db_item.fylkesnummer,
            kommunenummer=db_item.kommunenummer,
            spot_history=[self._spot_to_domain(row) for row in db_item.spot_history],
            created_at=_as_utc(db_item.created_at),
            updated_at=_as_utc(db_item.updated_at),
            **details,
        )

    @staticmethod
    def _spot_to_domain(row: SpotRecordDB) -> SpotRecord:
        return SpotRecord(
            region=row.region,
            discovered_at=_as_utc(row.discovered_at),
            last_seen_at=_as_utc(row.last_seen_at),
            spots=row.spots,
            age_group=AgeGroup(row.age_group),
            availability_date=row.availability_date,
            status=SpotStatus(row.status),
            spot_id=row.spot_id,
        )


class NotificationPreferenceRepository:
    """Repository for NotificationPreference CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, preference: NotificationPreference) -> NotificationPreference:
        """Create a new preference."""
        db_item = NotificationPreferenceDB(
            id=str(preference.id),
            user_id=preference.user_id,
            type=preference.type.value,
            parameters_json=preference.parameters.model_dump_json(),
            is_enabled=preference.is_enabled,
            created_at=preference.created_at,
        )
        self.session.add(db_item)
        self.session.flush()
        return self._to_domain(db_item)

    def get_for_user(
        self, preference_id: UUID | str, user_id: str
    ) -> NotificationPreference | None:
        """Get a preference by ID, scoped to its owner."""
        db_item = self._get_db(preference_id, user_id)
        return self._to_domain(db_item) if db_item else None

    def list_for_user(self, user_id: str) -> list[NotificationPreference]:
        """List all preferences owned by a user."""
        stmt = (
            select(NotificationPreferenceDB)
            .where(NotificationPreferenceDB.user_id == user_id)
            .order_by(NotificationPreferenceDB.created_at)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def list_enabled(self) -> list[NotificationPreference]:
        """List every enabled preference across users."""
        stmt = select(NotificationPreferenceDB).where(NotificationPreferenceDB.is_enabled.is_(True))
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(p) for p in result]

    def update(self, preference: NotificationPreference) -> NotificationPreference:
        """Update an existing preference."""
        db_item = self._get_db(preference.id, preference.user_id)
        if db_item is None:
            raise ValueError(f"Preference with id {preference.id} not found")

        db_item.type = preference.type.value
        db_item.parameters_json = preference.parameters.model_dump_json()
        db_item.is_enabled = preference.is_enabled

        self.session.flush()
        return self._to_domain(db_item)

    def delete(self, preference_id: UUID | str, user_id: str) -> bool:
        """Delete a preference owned by user_id."""
        db_item = self._get_db(preference_id, user_id)
        if db_item is None:
            return False
        self.session.delete(db_item)
        self.session.flush()
        return True

    def _get_db(
        self, preference_id: UUID | str, user_id: str
    ) -> NotificationPreferenceDB | None:
        stmt = select(NotificationPreferenceDB).where(
            NotificationPreferenceDB.id == str(preference_id),
            NotificationPreferenceDB.user_id == user_id,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _to_domain(self, db_item: NotificationPreferenceDB) -> NotificationPreference:
        """Convert DB model to domain model."""
        return NotificationPreference(
            id=UUID(db_item.id),
            user_id=db_item.user_id,
            type=PreferenceType(db_item.type),
            parameters=PreferenceParameters.model_validate_json(db_item.parameters_json),
            is_enabled=db_item.is_enabled,
            created_at=_as_utc(db_item.created_at),
        )
