"""
DuoMatch — Match & Conversation API

Match listing, unmatch/block, and the per-match message log.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from duomatch.api.deps import Services, current_user_id, get_services
from duomatch.errors import InvalidActor
from duomatch.schemas.match import MatchDetail, MatchSummary
from duomatch.schemas.message import (
    MarkReadRequest,
    MarkReadResponse,
    MessageCreate,
    MessageRead,
)

router = APIRouter()


async def _require_participant(
    match_id: uuid.UUID, user_id: uuid.UUID, services: Services
) -> MatchDetail:
    match = await services.matches.get_match(match_id)
    members = {*match.duo_a.member_ids, *match.duo_b.member_ids}
    if user_id not in members:
        raise InvalidActor("You are not part of this match.")
    return match


# ──────────────────────────────────────────────────────────────────────────────
# Matches
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/duo/{duo_id}",
    response_model=list[MatchSummary],
    summary="Active matches of a duo, most recent activity first",
)
async def get_matches(
    duo_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> list[MatchSummary]:
    duo = await services.pairing.get_duo(duo_id)
    if user_id not in duo.member_ids:
        raise InvalidActor("You are not a member of this duo.")
    return await services.matches.get_matches(duo_id)


@router.get(
    "/{match_id}",
    response_model=MatchDetail,
    summary="Get a match with both duos",
)
async def get_match(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> MatchDetail:
    return await _require_participant(match_id, user_id, services)


@router.post(
    "/{match_id}/unmatch",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive a match",
)
async def unmatch(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> Response:
    await services.matches.unmatch(match_id, actor=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{match_id}/block",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Block the other duo",
)
async def block(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> Response:
    await services.matches.block(match_id, actor=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────────────────────
# Messages
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{match_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    match_id: uuid.UUID,
    body: MessageCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> MessageRead:
    return await services.conversation.send(
        match_id, user_id, body.content, body.message_type
    )


@router.get(
    "/{match_id}/messages",
    response_model=list[MessageRead],
    summary="Newest-first page of messages",
)
async def get_messages(
    match_id: uuid.UUID,
    limit: int | None = Query(None, ge=1, le=200),
    before: uuid.UUID | None = Query(None),
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> list[MessageRead]:
    await _require_participant(match_id, user_id, services)
    return await services.conversation.get_messages(match_id, limit=limit, before=before)


@router.post(
    "/{match_id}/messages/read",
    response_model=MarkReadResponse,
    summary="Mark messages as read",
)
async def mark_read(
    match_id: uuid.UUID,
    body: MarkReadRequest,
    user_id: uuid.UUID = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> MarkReadResponse:
    await _require_participant(match_id, user_id, services)
    updated = await services.conversation.mark_read(body.message_ids, match_id=match_id)
    return MarkReadResponse(updated=updated)
