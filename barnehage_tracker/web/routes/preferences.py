"""Notification preference routes (per authenticated user)."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from barnehage_tracker.core.schema import NotificationPreference
from barnehage_tracker.db.repositories import NotificationPreferenceRepository
from barnehage_tracker.web.dependencies import SessionDep, UserIdDep

router = APIRouter(prefix="/api/preferences", tags=["preferences"])

# Body keys a client may change on an existing preference
_UPDATABLE = {"type": "type", "parameters": "parameters", "isEnabled": "is_enabled"}


def _validate(data: dict[str, Any]) -> NotificationPreference:
    try:
        return NotificationPreference.model_validate(data)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=[{"loc": err["loc"], "msg": err["msg"]} for err in e.errors()],
        ) from e


def _to_json(preference: NotificationPreference) -> dict[str, Any]:
    return preference.model_dump(mode="json", by_alias=True)


@router.get("")
async def list_preferences(session: SessionDep, user_id: UserIdDep) -> JSONResponse:
    """List the caller's preferences."""
    preferences = NotificationPreferenceRepository(session).list_for_user(user_id)
    return JSONResponse([_to_json(p) for p in preferences])


@router.post("")
async def create_preference(
    session: SessionDep,
    user_id: UserIdDep,
    body: Annotated[dict[str, Any], Body()],
) -> JSONResponse:
    """Create a preference; type and parameters are required."""
    if not body.get("type") or body.get("parameters") is None:
        raise HTTPException(status_code=400, detail="Missing required fields")

    preference = _validate({
        "user_id": user_id,
        "type": body["type"],
        "parameters": body["parameters"],
        "is_enabled": body.get("isEnabled", True),
    })

    created = NotificationPreferenceRepository(session).create(preference)
    session.commit()
    return JSONResponse(_to_json(created), status_code=201)


@router.put("/{preference_id}")
async def update_preference(
    preference_id: UUID,
    session: SessionDep,
    user_id: UserIdDep,
    body: Annotated[dict[str, Any], Body()],
) -> JSONResponse:
    """Update the caller's preference."""
    repo = NotificationPreferenceRepository(session)
    existing = repo.get_for_user(preference_id, user_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Preference not found")

    data = existing.model_dump()
    for key, field_name in _UPDATABLE.items():
        if key in body:
            data[field_name] = body[key]

    updated = repo.update(_validate(data))
    session.commit()
    return JSONResponse(_to_json(updated))


@router.delete("/{preference_id}")
async def delete_preference(
    preference_id: UUID, session: SessionDep, user_id: UserIdDep
) -> JSONResponse:
    """Delete the caller's preference."""
    if not NotificationPreferenceRepository(session).delete(preference_id, user_id):
        raise HTTPException(status_code=404, detail="Preference not found")
    session.commit()
    return JSONResponse({"message": "Preference deleted successfully"})
