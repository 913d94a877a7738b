"""Registry of users with an active session."""

from typing import Dict, List


class SessionRegistry:
    """Tracks which users are connected and whether their initial load finished."""

    def __init__(self):
        self._sessions: Dict[int, bool] = {}

    def start(self, user_id: int) -> None:
        self._sessions[user_id] = False

    def end(self, user_id: int) -> bool:
        return self._sessions.pop(user_id, None) is not None

    def is_active(self, user_id: int) -> bool:
        return user_id in self._sessions

    def mark_loaded(self, user_id: int) -> None:
        if user_id in self._sessions:
            self._sessions[user_id] = True

    def is_loaded(self, user_id: int) -> bool:
        return self._sessions.get(user_id, False)

    def active_users(self) -> List[int]:
        return list(self._sessions)
