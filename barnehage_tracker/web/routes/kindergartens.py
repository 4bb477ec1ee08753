"""Kindergarten query routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from barnehage_tracker.core.enums import AgeGroup
from barnehage_tracker.db.repositories import KindergartenRepository
from barnehage_tracker.web.dependencies import SessionDep

router = APIRouter(prefix="/api/kindergartens", tags=["kindergartens"])


@router.get("")
async def list_kindergartens(
    session: SessionDep,
    region: str | None = None,
    age_group: Annotated[AgeGroup | None, Query(alias="ageGroup")] = None,
    has_availability: Annotated[bool, Query(alias="hasAvailability")] = False,
    lat: float | None = None,
    lng: float | None = None,
    max_distance: Annotated[float | None, Query(alias="maxDistance", gt=0)] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> JSONResponse:
    """
    Search kindergartens.

    Spot filters (region, ageGroup, hasAvailability) must all hold for
    the same history record. The radius filter applies only when lat,
    lng and maxDistance (km) are all given.
    """
    near = (lat, lng) if lat is not None and lng is not None and max_distance else None

    repo = KindergartenRepository(session)
    kindergartens, total = repo.search(
        region=region,
        age_group=age_group,
        has_availability=has_availability,
        near=near,
        max_distance_km=max_distance if near else None,
        limit=limit,
        offset=offset,
    )

    return JSONResponse({
        "data": [k.model_dump(mode="json", by_alias=True) for k in kindergartens],
        "total": total,
        "offset": offset,
        "limit": limit,
    })


@router.get("/{kindergarten_id}")
async def get_kindergarten(kindergarten_id: UUID, session: SessionDep) -> JSONResponse:
    """Get a kindergarten with its full spot history."""
    kindergarten = KindergartenRepository(session).get_by_id(kindergarten_id)
    if kindergarten is None:
        raise HTTPException(status_code=404, detail="Kindergarten not found")
    return JSONResponse(kindergarten.model_dump(mode="json", by_alias=True))
