"""Cached user tier and proficiency lookup."""

from typing import Protocol

import structlog
from pydantic import BaseModel

from message_accuracy.detectors.cache import TTLCache
from message_accuracy.models.request import Proficiency, Tier

logger = structlog.get_logger()


class UserProfile(BaseModel):
    user_id: str
    tier: Tier = Tier.FREE
    level: Proficiency = Proficiency.INTERMEDIATE


class ProfileLookup(Protocol):
    async def get_profile(self, user_id: str) -> UserProfile:
        ...


class InMemoryProfileLookup:
    """Dict-backed lookup; unknown users get a Free/Intermediate profile."""

    def __init__(self, profiles: dict[str, UserProfile] | None = None):
        self.profiles = dict(profiles or {})

    async def get_profile(self, user_id: str) -> UserProfile:
        return self.profiles.get(user_id) or UserProfile(user_id=user_id)


class CachedProfileLookup:
    """Read-through TTL cache in front of another lookup.

    Args:
        inner: Lookup that owns the profile data.
        ttl_seconds: Lifetime of a cached profile.
        cache: Optional shared cache; a private one is created otherwise.
    """

    def __init__(self, inner: ProfileLookup, ttl_seconds: float = 300, cache: TTLCache | None = None):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self.cache = cache or TTLCache(ttl_seconds=ttl_seconds)

    async def get_profile(self, user_id: str) -> UserProfile:
        key = f"profile:{user_id}"
        cached = await self.cache.lookup(key)
        if cached is not None:
            return cached
        profile = await self.inner.get_profile(user_id)
        self.cache.set_background(key, profile, self.ttl_seconds)
        logger.debug("profile_loaded", user_id=user_id, tier=profile.tier.value)
        return profile
