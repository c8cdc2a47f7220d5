"""
DuoMatch — Duo & Invite API

Invite a partner, answer invites, and manage the caller's duo.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Response, status

from duomatch.api.deps import Services, current_user_id, get_services
from duomatch.schemas.duo import DuoBioUpdate, DuoSummary, InviteCreate, InviteSummary

logger = structlog.get_logger("duomatch.api.duos")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# Invites
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/invites",
    response_model=InviteSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Invite another user to form a duo",
)
async def send_invite(
    body: InviteCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> InviteSummary:
    return await services.pairing.send_invite(user_id, body.to_user_id, body.message)


@router.get(
    "/invites/incoming",
    response_model=list[InviteSummary],
    summary="Pending invites addressed to the caller",
)
async def list_incoming_invites(
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> list[InviteSummary]:
    return await services.pairing.list_incoming_invites(user_id)


@router.get(
    "/invites/sent",
    response_model=list[InviteSummary],
    summary="Pending invites sent by the caller",
)
async def list_sent_invites(
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> list[InviteSummary]:
    return await services.pairing.list_sent_invites(user_id)


@router.post(
    "/invites/{invite_id}/accept",
    response_model=DuoSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Accept an invite and form the duo",
)
async def accept_invite(
    invite_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> DuoSummary:
    return await services.pairing.accept_invite(invite_id, actor=user_id)


@router.post(
    "/invites/{invite_id}/decline",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Decline an invite",
)
async def decline_invite(
    invite_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> Response:
    await services.pairing.decline_invite(invite_id, actor=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/invites/{invite_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel an invite the caller sent",
)
async def cancel_invite(
    invite_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> Response:
    await services.pairing.cancel_invite(invite_id, actor=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────────────────────
# Duos
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/me",
    response_model=DuoSummary | None,
    summary="The caller's active duo, if any",
)
async def get_current_duo(
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> DuoSummary | None:
    return await services.pairing.get_current_duo(user_id)


@router.get(
    "/{duo_id}",
    response_model=DuoSummary,
    summary="Get a duo with both member profiles",
)
async def get_duo(
    duo_id: uuid.UUID,
    services: Services = Depends(get_services),
) -> DuoSummary:
    return await services.pairing.get_duo(duo_id)


@router.patch(
    "/{duo_id}/bio",
    response_model=DuoSummary,
    summary="Update the joint duo bio",
)
async def update_duo_bio(
    duo_id: uuid.UUID,
    body: DuoBioUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> DuoSummary:
    return await services.pairing.update_duo_bio(duo_id, body.bio, actor=user_id)


@router.post(
    "/{duo_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dissolve the duo",
)
async def leave_duo(
    duo_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> Response:
    await services.pairing.leave_duo(duo_id, actor=user_id)
    logger.info("duo_left_via_api", duo_id=str(duo_id), user_id=str(user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
