"""Request-scoped batched lookups.

A ``RequestLoaders`` instance lives for one service call. It remembers every
user and membership it has fetched so repeated lookups within that call don't
go back to the database, and it fetches all misses in a single query.
"""

import logging
from collections.abc import Iterable

from .db import Database
from .models import GroupMember, User

logger = logging.getLogger(__name__)


class RequestLoaders:
    """Memoized, batched access to users and group members for one request."""

    def __init__(self, db: Database):
        self.db = db
        self._users: dict[str, User | None] = {}
        self._members: dict[str, list[GroupMember]] = {}

    def users_by_id(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Load users by ID, querying only those not already cached."""
        wanted = list(dict.fromkeys(user_ids))
        missing = [user_id for user_id in wanted if user_id not in self._users]

        if missing:
            loaded = self.db.get_users(missing)
            for user_id in missing:
                self._users[user_id] = loaded.get(user_id)
            logger.debug(f"Loaded {len(loaded)}/{len(missing)} users")

        users = {}
        for user_id in wanted:
            user = self._users[user_id]
            if user is not None:
                users[user_id] = user
        return users

    def members_by_group_id(self, group_id: str) -> list[GroupMember]:
        """Load the members of a group."""
        if group_id not in self._members:
            self._members.update(self.db.get_members([group_id]))
        return self._members[group_id]

