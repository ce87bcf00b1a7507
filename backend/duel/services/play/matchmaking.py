import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from duel.exceptions import SymbolTaken
from .ids import new_id


@dataclass
class PendingMatch:
    """Two paired users choosing their symbols before a room exists."""
    id: str
    players: Dict[str, dict] = field(default_factory=dict)  # username -> {'sid', 'symbol'}
    chosen_symbols: Set[str] = field(default_factory=set)

    @property
    def complete(self) -> bool:
        return all(p['symbol'] is not None for p in self.players.values())

    def opponent_of(self, username: str) -> Optional[str]:
        return next((u for u in self.players if u != username), None)


class MatchmakingQueue:
    """Random-opponent queue plus the symbol negotiation for the pairs it makes.

    Pairing and removal happen under one lock, so two users enqueueing at
    once can never both claim the same waiting opponent.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._queue: Dict[str, str] = {}  # username -> sid, insertion ordered
        self._pending: Dict[str, PendingMatch] = {}

    def enqueue(self, username: str, sid: str) -> Optional[PendingMatch]:
        with self._lock:
            if username in self._queue:
                # Same user from a newer socket; keep the place, follow the sid
                self._queue[username] = sid
                return None
            self._queue[username] = sid
            opponent = next((u for u in self._queue if u != username), None)
            if opponent is None:
                return None
            opponent_sid = self._queue.pop(opponent)
            del self._queue[username]
            match = PendingMatch(
                id=new_id('match'),
                players={
                    username: {'sid': sid, 'symbol': None},
                    opponent: {'sid': opponent_sid, 'symbol': None},
                },
            )
            self._pending[match.id] = match
            return match

    def cancel(self, username: str) -> bool:
        with self._lock:
            return self._queue.pop(username, None) is not None

    def is_queued(self, username: str) -> bool:
        with self._lock:
            return username in self._queue

    def queued(self) -> List[str]:
        with self._lock:
            return list(self._queue)

    def pending(self, match_id: str) -> Optional[PendingMatch]:
        with self._lock:
            return self._pending.get(match_id)

    def choose_symbol(self, match_id: str, username: str, symbol: str) -> Optional[PendingMatch]:
        """Claim ``symbol`` for ``username``.

        Returns the match when the choice was recorded (check ``complete``;
        a complete match has already been removed from the table), None for
        unknown matches, non-members and repeat choices. Raises
        ``SymbolTaken`` on a duplicate symbol.
        """
        with self._lock:
            match = self._pending.get(match_id)
            if not match or username not in match.players:
                return None
            entry = match.players[username]
            if entry['symbol'] is not None:
                return None
            if symbol in match.chosen_symbols:
                raise SymbolTaken(symbol)
            entry['symbol'] = symbol
            match.chosen_symbols.add(symbol)
            if match.complete:
                del self._pending[match_id]
            return match

    def drop_user(self, username: str) -> List[PendingMatch]:
        """Discard the pending matches ``username`` is part of."""
        with self._lock:
            dropped = [m for m in self._pending.values() if username in m.players]
            for match in dropped:
                del self._pending[match.id]
            return dropped

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)
