"""Tests for SwipeEngine: swipe upsert and reciprocal-match detection."""
import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from duomatch.errors import InvalidActor, NotActive, NotFound, SelfSwipe
from duomatch.models.enums import SwipeDirection
from duomatch.models.match import Match, Swipe
from duomatch.services.swipe_engine import SwipeEngine


@pytest.fixture
def two_duos(make_duo):
    async def _make():
        first = await make_duo("Alex", "Blake")
        second = await make_duo("Casey", "Drew")
        return first, second

    return _make


async def _count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestValidation:

    @pytest.mark.asyncio
    async def test_self_swipe(self, services, two_duos):
        first, _ = await two_duos()
        with pytest.raises(SelfSwipe):
            await services.swipes.record_swipe(
                first.id, first.members[0].id, first.id, SwipeDirection.LIKE
            )

    @pytest.mark.asyncio
    async def test_actor_must_belong_to_swiping_duo(self, services, two_duos):
        first, second = await two_duos()
        with pytest.raises(InvalidActor):
            await services.swipes.record_swipe(
                first.id, second.members[0].id, second.id, SwipeDirection.LIKE
            )

    @pytest.mark.asyncio
    async def test_unknown_target(self, services, two_duos):
        first, _ = await two_duos()
        with pytest.raises(NotFound):
            await services.swipes.record_swipe(
                first.id, first.members[0].id, uuid.uuid4(), SwipeDirection.LIKE
            )

    @pytest.mark.asyncio
    async def test_inactive_target(self, services, two_duos):
        first, second = await two_duos()
        await services.pairing.leave_duo(second.id)
        with pytest.raises(NotActive):
            await services.swipes.record_swipe(
                first.id, first.members[0].id, second.id, SwipeDirection.LIKE
            )

    @pytest.mark.asyncio
    async def test_target_dissolved_after_validation(
        self, services, session_factory, two_duos, monkeypatch
    ):
        first, second = await two_duos()
        original = SwipeEngine._validate
        calls = []

        async def validate_then_dissolve(self, session, *args):
            await original(self, session, *args)
            if not calls:
                calls.append(args)
                await services.pairing.leave_duo(second.id)

        monkeypatch.setattr(SwipeEngine, "_validate", validate_then_dissolve)

        with pytest.raises(NotActive):
            await services.swipes.record_swipe(
                first.id, first.members[0].id, second.id, SwipeDirection.LIKE
            )

        assert await _count(session_factory, Swipe) == 0


class TestRecordSwipe:

    @pytest.mark.asyncio
    async def test_one_sided_like_is_not_a_match(self, services, two_duos, recorded_events):
        first, second = await two_duos()

        result = await services.swipes.record_swipe(
            first.id, first.members[0].id, second.id, SwipeDirection.LIKE
        )

        assert result.is_match is False
        assert result.match is None
        assert recorded_events[-1].type == "swipe_recorded"

    @pytest.mark.asyncio
    async def test_reswipe_overwrites(self, services, session_factory, two_duos):
        first, second = await two_duos()
        alex, blake = first.member_ids

        await services.swipes.record_swipe(first.id, alex, second.id, "pass")
        await services.swipes.record_swipe(first.id, blake, second.id, "like")

        assert await _count(session_factory, Swipe) == 1
        async with session_factory() as session:
            swipe = await session.scalar(select(Swipe))
        assert swipe.direction == "like"
        assert swipe.swiper_user_id == blake
        assert swipe.updated_at is not None

    @pytest.mark.asyncio
    async def test_same_swipe_twice_is_idempotent(self, services, session_factory, two_duos):
        first, second = await two_duos()
        alex = first.members[0].id

        await services.swipes.record_swipe(first.id, alex, second.id, "like")
        await services.swipes.record_swipe(first.id, alex, second.id, "like")

        assert await _count(session_factory, Swipe) == 1

    @pytest.mark.parametrize(
        "first_direction, second_direction",
        [("like", "like"), ("like", "superLike"), ("superLike", "like")],
    )
    @pytest.mark.asyncio
    async def test_reciprocal_positive_swipes_match(
        self, services, two_duos, first_direction, second_direction
    ):
        first, second = await two_duos()

        opening = await services.swipes.record_swipe(
            first.id, first.members[0].id, second.id, first_direction
        )
        closing = await services.swipes.record_swipe(
            second.id, second.members[1].id, first.id, second_direction
        )

        assert opening.is_match is False
        assert closing.is_match is True
        assert {closing.match.duo_a_id, closing.match.duo_b_id} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_match_is_order_independent(self, services, session_factory, make_duo):
        a = await make_duo("Alex", "Blake")
        b = await make_duo("Casey", "Drew")
        c = await make_duo("Eli", "Frankie")

        await services.swipes.record_swipe(a.id, a.members[0].id, b.id, "like")
        ab = await services.swipes.record_swipe(b.id, b.members[0].id, a.id, "like")
        await services.swipes.record_swipe(c.id, c.members[0].id, a.id, "like")
        ac = await services.swipes.record_swipe(a.id, a.members[0].id, c.id, "like")

        assert ab.is_match and ac.is_match
        assert await _count(session_factory, Match) == 2

    @pytest.mark.asyncio
    async def test_pass_never_matches(self, services, session_factory, two_duos):
        first, second = await two_duos()

        await services.swipes.record_swipe(first.id, first.members[0].id, second.id, "like")
        result = await services.swipes.record_swipe(
            second.id, second.members[0].id, first.id, "pass"
        )

        assert result.is_match is False
        assert await _count(session_factory, Match) == 0

    @pytest.mark.asyncio
    async def test_changed_mind_to_pass_blocks_later_match(
        self, services, session_factory, two_duos
    ):
        first, second = await two_duos()
        alex = first.members[0].id

        await services.swipes.record_swipe(first.id, alex, second.id, "like")
        await services.swipes.record_swipe(first.id, alex, second.id, "pass")
        result = await services.swipes.record_swipe(
            second.id, second.members[0].id, first.id, "like"
        )

        assert result.is_match is False
        assert await _count(session_factory, Match) == 0

    @pytest.mark.asyncio
    async def test_repeat_like_returns_existing_match(self, services, session_factory, two_duos):
        first, second = await two_duos()
        await services.swipes.record_swipe(first.id, first.members[0].id, second.id, "like")
        original = await services.swipes.record_swipe(
            second.id, second.members[0].id, first.id, "like"
        )

        again = await services.swipes.record_swipe(
            first.id, first.members[1].id, second.id, "superLike"
        )

        assert again.is_match is True
        assert again.match.id == original.match.id
        assert await _count(session_factory, Match) == 1

    @pytest.mark.asyncio
    async def test_concurrent_reciprocal_likes_create_one_match(
        self, services, session_factory, two_duos, recorded_events
    ):
        first, second = await two_duos()

        results = await asyncio.gather(
            services.swipes.record_swipe(first.id, first.members[0].id, second.id, "like"),
            services.swipes.record_swipe(second.id, second.members[0].id, first.id, "like"),
        )

        matched = [r for r in results if r.is_match]
        assert matched, "at least one racer must observe the other's like"
        assert len({r.match.id for r in matched}) == 1
        assert await _count(session_factory, Match) == 1
        assert [e.type for e in recorded_events].count("match_created") == 1
