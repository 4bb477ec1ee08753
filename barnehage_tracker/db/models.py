"""SQLAlchemy ORM models for Barnehage Tracker.

These models define the database tables:
- KindergartenDB (registry entity; descriptive attributes as JSON payload)
- SpotRecordDB (spot history rows, ordered by position)
- NotificationPreferenceDB (user alert criteria)
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class KindergartenDB(Base):
    """
    Database model for kindergartens.

    Identity and lookup fields are columns; the remaining bootstrap
    attributes are stored as a JSON payload.
    """

    __tablename__ = "kindergartens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    orgnr: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    navn: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    fylkesnummer: Mapped[str | None] = mapped_column(String(10), nullable=True)
    kommunenummer: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    details_json: Mapped[str] = mapped_column(Text, default="{}")  # JSON object
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    spot_history: Mapped[list["SpotRecordDB"]] = relationship(
        "SpotRecordDB",
        back_populates="kindergarten",
        order_by="SpotRecordDB.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<KindergartenDB(id={self.id}, orgnr={self.orgnr}, navn='{self.navn}')>"


class SpotRecordDB(Base):
    """
    Database model for spot history entries.

    Position preserves the append order of a kindergarten's history.
    """

    __tablename__ = "spot_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    kindergarten_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("kindergartens.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    region: Mapped[str] = mapped_column(String(100), default="", index=True)
    discovered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    spots: Mapped[int] = mapped_column(Integer, default=1)
    age_group: Mapped[str] = mapped_column(String(20), default="unknown", index=True)
    availability_date: Mapped[str] = mapped_column(String(50), default="now")
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    spot_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Relationships
    kindergarten: Mapped["KindergartenDB"] = relationship(
        "KindergartenDB", back_populates="spot_history"
    )

    def __repr__(self) -> str:
        return f"<SpotRecordDB(spot_id={self.spot_id}, status={self.status})>"


class NotificationPreferenceDB(Base):
    """Database model for notification preferences."""

    __tablename__ = "notification_preferences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    parameters_json: Mapped[str] = mapped_column(Text, default="{}")  # JSON object
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    def __repr__(self) -> str:
        return f"<NotificationPreferenceDB(id={self.id}, type={self.type})>"
