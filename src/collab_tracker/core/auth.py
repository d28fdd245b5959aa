# src/collab_tracker/core/auth.py

from __future__ import annotations

import hmac
import logging

from .models import User, utc_now_iso

logger = logging.getLogger(__name__)

# (id, username, password, display name). Seeded at startup; never deleted.
SEED_USERS: tuple[tuple[str, str, str, str], ...] = (
    ("1", "ravali", "ravali123", "Ravali"),
    ("2", "vinay", "vinay123", "Vinay"),
)


class Authenticator:
    """Static-credential check against the fixed user table."""

    def __init__(self, seed: tuple[tuple[str, str, str, str], ...] = SEED_USERS) -> None:
        created_at = utc_now_iso()
        self._users: dict[str, User] = {
            uid: User(id=uid, username=username, display_name=name, password_secret=password, created_at=created_at)
            for uid, username, password, name in seed
        }
        self._current: User | None = None

    @property
    def current_user(self) -> User | None:
        return self._current

    @property
    def users(self) -> list[User]:
        return list(self._users.values())

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def display_name(self, user_id: str | None) -> str:
        user = self._users.get(user_id or "")
        return user.display_name if user else "Unknown User"

    def login(self, username: str, password: str) -> bool:
        name = (username or "").strip().lower()
        for user in self._users.values():
            if user.username == name and hmac.compare_digest(
                user.password_secret.encode("utf-8"), (password or "").encode("utf-8")
            ):
                self._current = user
                logger.info("Login ok user=%s", user.id)
                return True
        logger.info("Login failed username=%s", name)
        return False

    def logout(self) -> None:
        if self._current is not None:
            logger.info("Logout user=%s", self._current.id)
        self._current = None

    def rename(self, user_id: str, display_name: str) -> User | None:
        """display_name is the only mutable user attribute."""
        user = self._users.get(user_id)
        if user is None or not display_name.strip():
            return None
        user.display_name = display_name.strip()
        return user
