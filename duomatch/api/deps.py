"""
DuoMatch — Request dependencies.

Services are built once by the application lifespan and stored on
``app.state.services``; endpoints pull them from the request rather than
from module-level singletons.  The caller's identity arrives from the
upstream identity provider in the ``X-User-Id`` header.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.services.conversation import Conversation
from duomatch.services.discovery_feed import DiscoveryFeed
from duomatch.services.events import EventBus
from duomatch.services.match_registry import MatchRegistry
from duomatch.services.pairing_manager import PairingManager
from duomatch.services.profile_repository import ProfileRepository
from duomatch.services.swipe_engine import SwipeEngine


@dataclass(frozen=True)
class Services:
    event_bus: EventBus
    profiles: ProfileRepository
    pairing: PairingManager
    discovery: DiscoveryFeed
    matches: MatchRegistry
    swipes: SwipeEngine
    conversation: Conversation


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    event_bus: EventBus | None = None,
) -> Services:
    """Wire the service graph around one session factory and event bus."""
    event_bus = event_bus or EventBus()
    profiles = ProfileRepository(session_factory)
    matches = MatchRegistry(session_factory, profiles, event_bus)
    return Services(
        event_bus=event_bus,
        profiles=profiles,
        pairing=PairingManager(session_factory, profiles, event_bus),
        discovery=DiscoveryFeed(session_factory, profiles),
        matches=matches,
        swipes=SwipeEngine(session_factory, matches, event_bus),
        conversation=Conversation(session_factory, event_bus),
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up.",
        )
    return services


def current_user_id(x_user_id: uuid.UUID = Header(..., alias="X-User-Id")) -> uuid.UUID:
    return x_user_id
