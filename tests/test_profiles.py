"""Tests for the cached user profile lookup."""

from unittest.mock import AsyncMock, MagicMock

from message_accuracy.assessment.profiles import CachedProfileLookup, InMemoryProfileLookup, UserProfile
from message_accuracy.models.request import Proficiency, Tier


class TestProfiles:
    async def test_unknown_user_defaults(self):
        profile = await InMemoryProfileLookup().get_profile("new")
        assert profile.tier is Tier.FREE
        assert profile.level is Proficiency.INTERMEDIATE

    async def test_known_user(self):
        lookup = InMemoryProfileLookup({"u1": UserProfile(user_id="u1", tier=Tier.PRO)})
        assert (await lookup.get_profile("u1")).tier is Tier.PRO

    async def test_cache_reads_through_once(self):
        inner = MagicMock()
        inner.get_profile = AsyncMock(return_value=UserProfile(user_id="u1", tier=Tier.PREMIUM))
        lookup = CachedProfileLookup(inner, ttl_seconds=60)

        first = await lookup.get_profile("u1")
        await lookup.cache.drain()
        second = await lookup.get_profile("u1")

        assert first == second
        inner.get_profile.assert_awaited_once_with("u1")
