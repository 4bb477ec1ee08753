"""Pydantic v2 models for Barnehage Tracker.

These models define the persisted domain entities:
- Kindergarten (the registry entity, with its ordered spot history)
- SpotRecord (one entry in a kindergarten's availability history)
- NotificationPreference (user-defined alert criteria)

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from barnehage_tracker.core.enums import AgeGroup, PreferenceType, SpotStatus, TransportType


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class CamelModel(BaseModel):
    """Base model serialising to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Kindergarten
# ============================================================================


class Address(CamelModel):
    """Visiting address of a kindergarten."""

    adresselinje: str | None = None
    postnr: str | None = None
    poststed: str | None = None


class Malform(CamelModel):
    """Written language standard used by the kindergarten."""

    malform_type: str | None = None
    malform_navn: str | None = None


class ParentSurveyResults(CamelModel):
    """Results of the national parent survey (foreldreundersøkelsen)."""

    ute_og_inne_miljo: float | None = None
    barnets_utvikling: float | None = None
    barnets_trivsel: float | None = None
    informasjon: float | None = None
    tilfredshet: float | None = None
    antall_inviterte: int | None = None
    antall_besvarte: int | None = None
    svarprosent: float | None = None
    argang: str | None = None


class SpotRecord(CamelModel):
    """
    One entry in a kindergarten's availability history.

    Records are appended when a listing is first seen and flipped to
    TAKEN when the listing disappears from the page. They are never removed.
    """

    region: str = ""
    discovered_at: datetime = Field(default_factory=_utc_now)
    last_seen_at: datetime = Field(default_factory=_utc_now)
    spots: int = 1
    age_group: AgeGroup = AgeGroup.UNKNOWN
    availability_date: str = "now"
    status: SpotStatus = SpotStatus.AVAILABLE
    spot_id: str

    @property
    def is_available(self) -> bool:
        return self.status == SpotStatus.AVAILABLE


class Kindergarten(CamelModel):
    """
    A kindergarten tracked by the registry.

    Descriptive attributes come from the bootstrap APIs; spot_history is
    maintained by the reconciliation pipeline.
    """

    id: UUID = Field(default_factory=uuid4)
    orgnr: str
    navn: str
    latitude: float | None = None
    longitude: float | None = None
    fylkesnummer: str | None = None
    kommunenummer: str | None = None

    # Details
    type: str | None = None
    alder: str | None = None
    eierform: str | None = None
    er_privat_barnehage: bool | None = None
    besoks_adresse: Address | None = None
    malform: Malform | None = None
    apningstid_fra: str | None = None
    apningstid_til: str | None = None
    kostpenger: float | None = None
    pedagogisk_profil: list[str] = Field(default_factory=list)

    # Statistics
    antall_barn: float | None = None
    antall_barn_per_ansatt: float | None = None
    antall_barn_per_barnehagelaerer: float | None = None
    leke_og_oppholdsareal_per_barn: float | None = None
    total_antall_kvadratmeter: float | None = None

    # Staff shares
    andel_ansatte_barnehagelarer: float | None = None
    andel_ansatte_med_barne_og_ungdomsarbeiderfag: float | None = None
    andel_ansatte_tilsvarende_barnehagelaerer: float | None = None
    andel_ansatte_med_annen_hoyere_utdanning: float | None = None
    andel_ansatte_med_annen_pedagogisk_utdanning: float | None = None
    andel_ansatte_med_annen_fagarbeiderutdanning: float | None = None
    andel_ansatte_med_annen_bakgrunn: float | None = None

    foreldreundersokelse: ParentSurveyResults | None = None

    spot_history: list[SpotRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @field_validator("navn")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("navn cannot be empty")
        return v

    @property
    def available_spots(self) -> list[SpotRecord]:
        """Spot records currently in AVAILABLE status."""
        return [spot for spot in self.spot_history if spot.is_available]

    def descriptive_fields(self) -> dict:
        """Return the bootstrap-owned attributes (everything except identity and history)."""
        return self.model_dump(exclude={"id", "spot_history", "created_at", "updated_at"})


# ============================================================================
# Notification Preferences
# ============================================================================


class PreferenceParameters(CamelModel):
    """Criteria attached to a notification preference."""

    kindergarten_ids: list[str] = Field(default_factory=list)
    region: str | None = None
    location: list[float] | None = None  # [latitude, longitude]
    max_distance: float | None = None  # kilometres
    transport_type: TransportType | None = None
    age_group: AgeGroup | None = None

    @field_validator("location")
    @classmethod
    def location_is_pair(cls, v: list[float] | None) -> list[float] | None:
        if not v:
            return None
        if len(v) != 2:
            raise ValueError("Location must be [latitude, longitude]")
        return v


class NotificationPreference(CamelModel):
    """A user's request to be told about matching new spots."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    type: PreferenceType
    parameters: PreferenceParameters = Field(default_factory=PreferenceParameters)
    is_enabled: bool = True
    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("user_id")
    @classmethod
    def user_id_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_id cannot be empty")
        return v.strip()
