"""
Registry Bootstrap Module
=========================

Populates the kindergarten registry from the barnehagefakta.no API:
one list call for the municipality, then one detail call per
kindergarten. A failed detail call, or details that do not validate,
degrade that kindergarten to the fields carried by the list entry.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from barnehage_tracker.core.schema import (
    Address,
    Kindergarten,
    Malform,
    ParentSurveyResults,
)
from barnehage_tracker.ingestion.crawler import Crawler
from barnehage_tracker.ingestion.registry import SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_KOMMUNENUMMER = "0301"  # Oslo
DEFAULT_DETAIL_CONCURRENCY = 5

# Staff share fields, all read from indikatorDataBarnehage
_STAFF_FIELDS = {
    "andel_ansatte_barnehagelarer": "andelAnsatteBarnehagelarer",
    "andel_ansatte_med_barne_og_ungdomsarbeiderfag": "andelAnsatteMedBarneOgUngdomsarbeiderfag",
    "andel_ansatte_tilsvarende_barnehagelaerer": "andelAnsatteTilsvarendeBarnehagelaerer",
    "andel_ansatte_med_annen_hoyere_utdanning": "andelAnsatteMedAnnenHoyereUtdanning",
    "andel_ansatte_med_annen_pedagogisk_utdanning": "andelAnsatteMedAnnenPedagogiskUtdanning",
    "andel_ansatte_med_annen_fagarbeiderutdanning": "andelAnsatteMedAnnenFagarbeiderutdanning",
    "andel_ansatte_med_annen_bakgrunn": "andelAnsatteMedAnnenBakgrunn",
}

_SURVEY_FIELDS = {
    "ute_og_inne_miljo": "foreldreundersokelsenUteOgInneMiljo",
    "barnets_utvikling": "foreldreundersokelsenBarnetsUtvikling",
    "barnets_trivsel": "foreldreundersokelsenBarnetsTrivsel",
    "informasjon": "foreldreundersokelsenInformasjon",
    "tilfredshet": "foreldreundersokelsenTilfredshet",
    "antall_inviterte": "foreldreundersokelsenAntallInviterte",
    "antall_besvarte": "foreldreundersokelsenAntallBesvarte",
    "svarprosent": "foreldreundersokelsenSvarprosent",
    "argang": "foreldreundersokelsenArgang",
}


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _coordinates(value: Any) -> tuple[float | None, float | None]:
    """The API sometimes returns [null, null] for unmapped kindergartens."""
    if not isinstance(value, list | tuple) or len(value) != 2:
        return None, None
    try:
        return float(value[0]), float(value[1])
    except (TypeError, ValueError):
        return None, None


def _pedagogical_profile(value: Any) -> list[str]:
    """The API returns null, a single string or a list."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def map_kindergarten_data(base: dict[str, Any], details: dict[str, Any] | None) -> Kindergarten:
    """
    Map API payloads onto a Kindergarten.

    Args:
        base: Entry from the municipality list endpoint
        details: Payload from the detail endpoint, or None if it failed

    Returns:
        Kindergarten with an empty spot history
    """
    if not details:
        latitude, longitude = _coordinates(base.get("koordinatLatLng"))
        return Kindergarten(
            orgnr=str(base["orgnr"]),
            navn=base["navn"],
            latitude=latitude,
            longitude=longitude,
            fylkesnummer=_as_str(base.get("fylkesnummer")),
            kommunenummer=_as_str(base.get("kommunenummer")),
        )

    indicators = details.get("indikatorDataBarnehage") or {}
    contact = details.get("kontaktinformasjon") or {}
    address = contact.get("besoksAdresse")
    malform = details.get("malform")
    latitude, longitude = _coordinates(details.get("koordinatLatLng"))
    survey = {field: indicators.get(key) for field, key in _SURVEY_FIELDS.items()}
    # Survey year arrives as either "2023" or 2023
    survey["argang"] = _as_str(survey["argang"])

    return Kindergarten(
        orgnr=str(base["orgnr"]),
        navn=base["navn"],
        latitude=latitude,
        longitude=longitude,
        fylkesnummer=_as_str((details.get("fylke") or {}).get("fylkesnummer")),
        kommunenummer=_as_str((details.get("kommune") or {}).get("kommunenummer")),
        type=details.get("type"),
        alder=_as_str(details.get("alder")),
        eierform=details.get("eierform"),
        er_privat_barnehage=details.get("erPrivatBarnehage"),
        besoks_adresse=Address.model_validate(address) if address else None,
        malform=Malform.model_validate(malform) if isinstance(malform, dict) else None,
        apningstid_fra=details.get("apningstidFra"),
        apningstid_til=details.get("apningstidTil"),
        kostpenger=details.get("kostpenger"),
        pedagogisk_profil=_pedagogical_profile(details.get("pedagogiskProfil")),
        antall_barn=indicators.get("antallBarn"),
        antall_barn_per_ansatt=indicators.get("antallBarnPerAnsatt"),
        antall_barn_per_barnehagelaerer=indicators.get("antallBarnPerBarnehagelaerer"),
        leke_og_oppholdsareal_per_barn=indicators.get("lekeOgOppholdsarealPerBarn"),
        total_antall_kvadratmeter=details.get("totalAntallKvadratmeter"),
        foreldreundersokelse=ParentSurveyResults(**survey),
        **{field: indicators.get(key) for field, key in _STAFF_FIELDS.items()},
    )


class BarnehagefaktaClient:
    """Client for the barnehagefakta.no registry API."""

    def __init__(self, crawler: Crawler, source: SourceConfig) -> None:
        self.crawler = crawler
        self.source = source
        self.base_url = source.url.rstrip("/")
        self.kommunenummer = str(
            source.custom_config.get("kommunenummer", DEFAULT_KOMMUNENUMMER)
        )

    def list_url(self) -> str:
        return f"{self.base_url}/api/Location/kommune/{self.kommunenummer}"

    def detail_url(self, orgnr: str) -> str:
        return f"{self.base_url}/api/Barnehage/orgnr/{orgnr}"

    async def fetch_kindergarten_list(self) -> list[dict[str, Any]]:
        """
        Fetch the municipality's kindergarten list.

        Raises:
            FetchError: If the list could not be fetched
        """
        data = await self.crawler.fetch_json(self.list_url(), self.source)
        if not isinstance(data, list):
            return []
        return data

    async def fetch_kindergarten_details(self, orgnr: str) -> dict[str, Any] | None:
        """Fetch one kindergarten's details, or None if the call failed."""
        results = await self.fetch_details_batch([orgnr], concurrency=1)
        return results[0]

    async def fetch_details_batch(
        self, orgnrs: list[str], concurrency: int = DEFAULT_DETAIL_CONCURRENCY
    ) -> list[dict[str, Any] | None]:
        """
        Fetch details for many kindergartens with bounded concurrency.

        Returns:
            Details per orgnr, in input order; None where the call failed
        """
        urls = [self.detail_url(orgnr) for orgnr in orgnrs]
        fetched = await self.crawler.fetch_batch(urls, self.source, concurrency=concurrency)

        details: list[dict[str, Any] | None] = []
        for orgnr, result in zip(orgnrs, fetched, strict=True):
            if not result.success:
                logger.error(f"Error fetching details for {orgnr}: {result.error}")
                details.append(None)
                continue
            try:
                details.append(json.loads(result.content))
            except ValueError as e:
                logger.error(f"Invalid detail payload for {orgnr}: {e}")
                details.append(None)
        return details


async def initialize_kindergartens(
    client: BarnehagefaktaClient,
    concurrency: int | None = None,
) -> list[Kindergarten]:
    """
    Fetch and map every kindergarten in the configured municipality.

    Args:
        client: Registry API client
        concurrency: Maximum concurrent detail requests

    Returns:
        Mapped kindergartens, in list order
    """
    if concurrency is None:
        concurrency = int(
            client.source.custom_config.get("detail_concurrency", DEFAULT_DETAIL_CONCURRENCY)
        )

    entries = [e for e in await client.fetch_kindergarten_list() if e.get("orgnr") and e.get("navn")]
    logger.info(f"Fetched {len(entries)} kindergartens from the registry API")

    details = await client.fetch_details_batch(
        [str(e["orgnr"]) for e in entries], concurrency=concurrency
    )

    kindergartens = []
    for entry, detail in zip(entries, details, strict=True):
        try:
            kindergarten = map_kindergarten_data(entry, detail)
        except ValidationError as e:
            logger.warning(
                f"Invalid details for {entry['navn']} ({entry['orgnr']}), "
                f"using list fields only: {e.error_count()} errors"
            )
            try:
                kindergarten = map_kindergarten_data(entry, None)
            except ValidationError as e:
                logger.error(f"Skipping {entry['orgnr']}: {e}")
                continue
        kindergartens.append(kindergarten)
        logger.debug(f"Mapped {entry['navn']} ({entry['orgnr']})")
    return kindergartens
