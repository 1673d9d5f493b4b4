from __future__ import annotations

import logging
import uuid
from typing import Mapping

from alldun.domain.entities import LeaderboardEntry, User
from alldun.domain.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)


class UserDirectory:
    """Users, friendships and the completed-task leaderboard."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    # ---- users ----
    def add_user(self, username: str, full_name: str, bio: str | None = None) -> User:
        username = (username or "").strip()
        full_name = (full_name or "").strip()
        if not username:
            raise ValidationError("Username cannot be empty.")
        if any(u.username.casefold() == username.casefold() for u in self._users.values()):
            raise ValidationError(f"Username {username!r} is taken.")
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            full_name=full_name or username,
            bio=(bio or "").strip() or None,
        )
        self._users[user.id] = user
        return user

    def get_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.")
        return user

    def all_users(self) -> list[User]:
        return list(self._users.values())

    def update_bio(self, user_id: str, bio: str | None) -> User:
        user = self.get_user(user_id)
        user.bio = (bio or "").strip() or None
        logger.info("Bio updated for user %s", user_id)
        return user

    def search(self, text: str) -> list[User]:
        needle = (text or "").strip().casefold()
        if not needle:
            return []
        return [
            u for u in self._users.values()
            if needle in u.username.casefold() or needle in u.full_name.casefold()
        ]

    # ---- friends ----
    def add_friend(self, user_id: str, friend_id: str) -> None:
        if user_id == friend_id:
            raise ValidationError("A user cannot befriend themselves.")
        user, friend = self.get_user(user_id), self.get_user(friend_id)
        user.friend_ids.add(friend.id)
        friend.friend_ids.add(user.id)
        logger.info("Users %s and %s are now friends", user_id, friend_id)

    def remove_friend(self, user_id: str, friend_id: str) -> None:
        user, friend = self.get_user(user_id), self.get_user(friend_id)
        user.friend_ids.discard(friend.id)
        friend.friend_ids.discard(user.id)

    def friends_of(self, user_id: str) -> list[User]:
        user = self.get_user(user_id)
        return [u for u in self._users.values() if u.id in user.friend_ids]

    def mutual_friends(self, user_id: str, other_id: str) -> list[User]:
        common = self.get_user(user_id).friend_ids & self.get_user(other_id).friend_ids
        return [u for u in self._users.values() if u.id in common]

    def suggestions(self, user_id: str) -> list[User]:
        user = self.get_user(user_id)
        candidates: set[str] = set()
        for friend_id in user.friend_ids:
            candidates |= self._users[friend_id].friend_ids
        candidates -= user.friend_ids | {user.id}
        return [u for u in self._users.values() if u.id in candidates]

    # ---- leaderboard ----
    def leaderboard(self, completed_counts: Mapping[str, int]) -> list[LeaderboardEntry]:
        ordered = sorted(
            self._users.values(),
            key=lambda u: (-completed_counts.get(u.id, 0), u.username.casefold()),
        )
        entries: list[LeaderboardEntry] = []
        rank = 0
        previous: int | None = None
        for user in ordered:
            count = completed_counts.get(user.id, 0)
            if count != previous:
                rank += 1
                previous = count
            entries.append(
                LeaderboardEntry(
                    rank=rank,
                    user_id=user.id,
                    username=user.username,
                    full_name=user.full_name,
                    completed_count=count,
                )
            )
        return entries
