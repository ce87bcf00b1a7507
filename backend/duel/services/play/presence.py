import threading
from typing import Dict, List, Optional, Tuple


class PresenceRegistry:
    """Connected, authenticated users keyed by socket id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_sid: Dict[str, str] = {}
        self._by_username: Dict[str, str] = {}

    def register(self, username: str, sid: str) -> List[dict]:
        with self._lock:
            previous_user = self._by_sid.get(sid)
            if previous_user and self._by_username.get(previous_user) == sid:
                del self._by_username[previous_user]
            # Last login wins; an older socket for this user stops being addressable
            previous_sid = self._by_username.get(username)
            if previous_sid and previous_sid != sid:
                self._by_sid.pop(previous_sid, None)
            self._by_sid[sid] = username
            self._by_username[username] = sid
            return self._snapshot()

    def unregister(self, sid: str) -> Tuple[Optional[str], List[dict]]:
        with self._lock:
            username = self._by_sid.pop(sid, None)
            if username and self._by_username.get(username) == sid:
                del self._by_username[username]
            return username, self._snapshot()

    def find(self, username: str) -> Optional[str]:
        with self._lock:
            return self._by_username.get(username)

    def username_for(self, sid: str) -> Optional[str]:
        with self._lock:
            return self._by_sid.get(sid)

    def snapshot(self) -> List[dict]:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> List[dict]:
        return [{'username': u, 'socketId': s} for s, u in self._by_sid.items()]
