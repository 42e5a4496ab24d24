from typing import Optional

from expensehub.access.cache import AccessCache
from expensehub.access.errors import NotFoundError
from expensehub.access.types import UserContext


class ProfileLookup:
    """Cached ``user id -> (role, company)`` lookups shared by the resolvers."""

    def __init__(self, store, cache: AccessCache):
        self.store = store
        self.cache = cache

    def get(self, user_id) -> Optional[UserContext]:
        key = ("profile", user_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        profile = self.store.get_profile(user_id)
        if profile is not None:
            self.cache.set(key, profile)
        return profile

    def require(self, user_id) -> UserContext:
        profile = self.get(user_id)
        if profile is None:
            raise NotFoundError("User not found.", user_id=user_id)
        return profile
