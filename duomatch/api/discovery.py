"""
DuoMatch — Discovery API
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from duomatch.api.deps import Services, current_user_id, get_services
from duomatch.config import get_settings
from duomatch.errors import InvalidActor
from duomatch.schemas.duo import DuoSummary

router = APIRouter()


@router.get(
    "/{duo_id}/candidates",
    response_model=list[DuoSummary],
    summary="Active duos this duo has not swiped on yet",
)
async def get_candidates(
    duo_id: uuid.UUID,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> list[DuoSummary]:
    current = await services.pairing.get_current_duo(user_id)
    if current is None or current.id != duo_id:
        raise InvalidActor("You can only browse candidates for your own duo.")
    limit = limit or get_settings().DISCOVERY_DEFAULT_LIMIT
    return await services.discovery.get_candidates(duo_id, limit=limit, offset=offset)
