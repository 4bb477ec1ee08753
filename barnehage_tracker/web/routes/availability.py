"""Availability routes."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from barnehage_tracker.core.enums import AgeGroup
from barnehage_tracker.db.repositories import KindergartenRepository
from barnehage_tracker.web.dependencies import SessionDep

router = APIRouter(prefix="/api/availability", tags=["availability"])


@router.get("")
async def list_availability(
    session: SessionDep,
    region: str | None = None,
    age_group: Annotated[AgeGroup | None, Query(alias="ageGroup")] = None,
    date: str | None = None,
) -> JSONResponse:
    """Kindergartens with at least one open spot matching every given filter."""
    kindergartens, _ = KindergartenRepository(session).search(
        region=region,
        age_group=age_group,
        has_availability=True,
        availability_date=date,
        limit=None,
    )
    return JSONResponse([k.model_dump(mode="json", by_alias=True) for k in kindergartens])
