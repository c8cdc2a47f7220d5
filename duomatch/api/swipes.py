"""
DuoMatch — Swipe API
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status

from duomatch.api.deps import Services, current_user_id, get_services
from duomatch.schemas.match import SwipeCreate, SwipeResult

logger = structlog.get_logger("duomatch.api.swipes")

router = APIRouter()


@router.post(
    "",
    response_model=SwipeResult,
    status_code=status.HTTP_201_CREATED,
    summary="Swipe on another duo",
)
async def record_swipe(
    body: SwipeCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> SwipeResult:
    """Record the caller's duo verdict on another duo.

    When the other duo already liked the caller's duo, the response carries
    ``is_match = true`` and the match record.
    """
    result = await services.swipes.record_swipe(
        swiper_duo=body.swiper_duo_id,
        swiper_user=user_id,
        swiped_duo=body.swiped_duo_id,
        direction=body.direction,
    )
    if result.is_match:
        logger.info("swipe_matched", match_id=str(result.match.id))
    return result
