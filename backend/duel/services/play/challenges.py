import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from .ids import new_id


@dataclass(frozen=True)
class Challenge:
    id: str
    challenger: str
    challenged: str
    challenger_symbol: str


class ChallengeBroker:
    """Open direct challenges; each is consumed at most once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._challenges: Dict[str, Challenge] = {}

    def create(self, challenger: str, challenged: str, symbol: str) -> Challenge:
        challenge = Challenge(
            id=new_id(),
            challenger=challenger,
            challenged=challenged,
            challenger_symbol=symbol,
        )
        with self._lock:
            self._challenges[challenge.id] = challenge
        return challenge

    def take(self, challenge_id: str, responder: str) -> Optional[Challenge]:
        """Remove and return the challenge if ``responder`` is its target."""
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            if not challenge or challenge.challenged != responder:
                return None
            return self._challenges.pop(challenge_id)

    def get(self, challenge_id: str) -> Optional[Challenge]:
        with self._lock:
            return self._challenges.get(challenge_id)

    def drop_user(self, username: str) -> List[Challenge]:
        """Discard every open challenge ``username`` sent or received."""
        with self._lock:
            dropped = [c for c in self._challenges.values()
                       if username in (c.challenger, c.challenged)]
            for challenge in dropped:
                del self._challenges[challenge.id]
            return dropped

    def __len__(self):
        with self._lock:
            return len(self._challenges)
