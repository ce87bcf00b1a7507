import enum
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from duel.services.stats import GameConcluded
from .rules import (
    RPS_CHOICES,
    empty_board,
    empty_cells,
    is_full,
    is_valid_position,
    resolve_rps,
    winning_symbol,
)
from .timer import TurnTimer


class Phase(enum.Enum):
    RPS = 'rps'
    PLAYING = 'playing'
    FINISHED_WIN = 'finished'
    FINISHED_DRAW = 'draw'

    @property
    def finished(self) -> bool:
        return self in (Phase.FINISHED_WIN, Phase.FINISHED_DRAW)


@dataclass
class PlayContext:
    """Collaborators shared by every room of one arena."""
    notifier: Any  # .emit(event, payload, to=sid)
    stats_sink: Any  # .submit(GameConcluded)
    logger: Any
    spawn: Callable
    sleep: Callable
    rng: random.Random
    turn_duration: int = 5
    reveal_delay: float = 3
    timers_enabled: bool = True
    chat_max_length: int = 500


class GameSession:
    """One two-player room: RPS tie-break, play, finish, rematch.

    Every public method takes the room lock; timer and reveal callbacks take
    it too and re-check that they still belong to the live state before
    touching anything.
    """

    def __init__(self, room_id: str, players: Dict[str, dict], ctx: PlayContext):
        if len(players) != 2:
            raise ValueError('A room needs exactly two players')
        self.room_id = room_id
        # username -> {'symbol': str, 'sid': str}
        self.players = {u: {'symbol': p['symbol'], 'sid': p['sid']} for u, p in players.items()}
        self.ctx = ctx
        self.lock = threading.RLock()
        self.board: List[Optional[str]] = empty_board()
        self.phase = Phase.RPS
        self.current_player: Optional[str] = None
        self.rps_choices: Dict[str, str] = {}
        self.last_winner: Optional[str] = None
        self.last_loser: Optional[str] = None
        self.rematch_requests = set()
        self.timer: Optional[TurnTimer] = None
        self.closed = False
        self._rps_round = 0

    # ---- helpers ----

    def opponent_of(self, username: str) -> Optional[str]:
        return next((u for u in self.players if u != username), None)

    def public_players(self) -> Dict[str, dict]:
        return {u: {'symbol': p['symbol'], 'socketId': p['sid']} for u, p in self.players.items()}

    def _broadcast(self, event: str, payload) -> None:
        for player in self.players.values():
            self.ctx.notifier.emit(event, payload, to=player['sid'])

    def send_to(self, username: str, event: str, payload) -> None:
        player = self.players.get(username)
        if player:
            self.ctx.notifier.emit(event, payload, to=player['sid'])

    def _owner_of(self, symbol: Optional[str]) -> Optional[str]:
        return next((u for u, p in self.players.items() if p['symbol'] == symbol), None)

    # ---- phase entry ----

    def start_rps(self) -> None:
        with self.lock:
            if self.closed:
                return
            self._cancel_timer()
            self.phase = Phase.RPS
            self.board = empty_board()
            self.current_player = None
            self.rps_choices = {}
            self._rps_round += 1
            self.ctx.logger.info(f"[rps-start] room={self.room_id} players={list(self.players)}")
            for username in self.players:
                self.send_to(username, 'rpsStart', {
                    'roomId': self.room_id,
                    'players': self.public_players(),
                    'opponent': self.opponent_of(username),
                })

    def start_play(self, first_player: str) -> None:
        with self.lock:
            if self.closed or first_player not in self.players:
                return
            self.phase = Phase.PLAYING
            self.board = empty_board()
            self.current_player = first_player
            self.rps_choices = {}
            self.rematch_requests.clear()
            self.ctx.logger.info(f"[game-start] room={self.room_id} first={first_player}")
            self._broadcast('gameStart', {
                'roomId': self.room_id,
                'players': self.public_players(),
                'currentPlayer': self.current_player,
                'board': list(self.board),
                'gameState': self.phase.value,
            })
            self._arm_timer()

    # ---- rock-paper-scissors ----

    def submit_rps(self, username: str, choice: str) -> bool:
        with self.lock:
            if self.closed or self.phase != Phase.RPS or username not in self.players:
                return False
            if choice not in RPS_CHOICES or username in self.rps_choices:
                return False
            # Both choices in means the result is already on screen
            if len(self.rps_choices) == len(self.players):
                return False
            self.rps_choices[username] = choice
            if len(self.rps_choices) < len(self.players):
                return True

            first, second = list(self.players)
            winner = resolve_rps(first, self.rps_choices[first], second, self.rps_choices[second], self.ctx.rng)
            tie = self.rps_choices[first] == self.rps_choices[second]
            self.ctx.logger.info(f"[rps-result] room={self.room_id} choices={self.rps_choices} winner={winner} tie={tie}")
            self._broadcast('rpsResult', {
                'roomId': self.room_id,
                'choices': dict(self.rps_choices),
                'winner': winner,
                'tie': tie,
            })
            round_token = self._rps_round
            delay = self.ctx.reveal_delay

        if delay and delay > 0:
            self.ctx.spawn(self._reveal_after_delay, round_token, winner, delay)
        else:
            self._reveal(round_token, winner)
        return True

    def _reveal_after_delay(self, round_token: int, winner: str, delay: float) -> None:
        self.ctx.sleep(delay)
        self._reveal(round_token, winner)

    def _reveal(self, round_token: int, winner: str) -> None:
        with self.lock:
            if self.closed or self.phase != Phase.RPS or self._rps_round != round_token:
                return
            self.start_play(winner)

    # ---- moves ----

    def make_move(self, username: str, position) -> bool:
        with self.lock:
            if self.closed or self.phase != Phase.PLAYING or username != self.current_player:
                return False
            if not is_valid_position(position) or self.board[position] is not None:
                return False
            self._apply_move(username, position, auto=False)
            return True

    def _apply_move(self, username: str, position: int, auto: bool) -> None:
        self._cancel_timer()
        self.board[position] = self.players[username]['symbol']
        winner = self._owner_of(winning_symbol(self.board))
        is_draw = winner is None and is_full(self.board)
        concluded = None

        if winner:
            loser = self.opponent_of(winner)
            self.phase = Phase.FINISHED_WIN
            self.last_winner, self.last_loser = winner, loser
            concluded = GameConcluded(self.room_id, tuple(self.players), winner=winner, loser=loser)
        elif is_draw:
            self.phase = Phase.FINISHED_DRAW
            self.last_winner = self.last_loser = None
            concluded = GameConcluded(self.room_id, tuple(self.players), draw=True)
        else:
            self.current_player = self.opponent_of(username)

        self.ctx.logger.info(
            f"[move] room={self.room_id} player={username} position={position} auto={auto} state={self.phase.value}"
        )
        self._broadcast('gameUpdate', {
            'roomId': self.room_id,
            'board': list(self.board),
            'currentPlayer': self.current_player,
            'gameState': self.phase.value,
            'winner': winner,
            'isDraw': is_draw,
            'position': position,
            'autoMove': auto,
        })

        if concluded:
            self.rematch_requests.clear()
            self.ctx.stats_sink.submit(concluded)
        else:
            self._arm_timer()

    # ---- turn timer ----

    def _arm_timer(self) -> None:
        self._cancel_timer()
        if not self.ctx.timers_enabled or self.phase != Phase.PLAYING:
            return
        self.timer = TurnTimer(
            self.ctx.turn_duration,
            on_tick=self._on_timer_tick,
            on_expire=self._on_timer_expire,
            spawn=self.ctx.spawn,
            sleep=self.ctx.sleep,
        )
        self.timer.start()

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def _timer_is_live(self, timer: TurnTimer) -> bool:
        return not self.closed and self.phase == Phase.PLAYING and self.timer is timer

    def _on_timer_tick(self, timer: TurnTimer, remaining: int) -> bool:
        with self.lock:
            if not self._timer_is_live(timer):
                return False
            self._broadcast('timerUpdate', {
                'roomId': self.room_id,
                'timeLeft': remaining,
                'currentPlayer': self.current_player,
            })
            return True

    def _on_timer_expire(self, timer: TurnTimer) -> None:
        with self.lock:
            if not self._timer_is_live(timer):
                return
            cells = empty_cells(self.board)
            if not cells:
                return
            position = self.ctx.rng.choice(cells)
            self.ctx.logger.info(f"[timer-fire] room={self.room_id} player={self.current_player} position={position}")
            self.timer = None
            self._apply_move(self.current_player, position, auto=True)

    # ---- rematch ----

    def request_rematch(self, username: str) -> bool:
        with self.lock:
            if self.closed or not self.phase.finished or username not in self.players:
                return False
            self.rematch_requests.add(username)
            self.send_to(self.opponent_of(username), 'rematchRequested', {
                'roomId': self.room_id,
                'username': username,
            })
            self._maybe_restart()
            return True

    def respond_rematch(self, username: str, accepted: bool) -> bool:
        with self.lock:
            if self.closed or not self.phase.finished or username not in self.players:
                return False
            if not accepted:
                self.rematch_requests.clear()
                self.send_to(self.opponent_of(username), 'rematchDeclined', {
                    'roomId': self.room_id,
                    'username': username,
                })
                return True
            self.rematch_requests.add(username)
            self._maybe_restart()
            return True

    def _maybe_restart(self) -> None:
        if set(self.players) - self.rematch_requests:
            return
        self.rematch_requests.clear()
        self.ctx.logger.info(f"[rematch] room={self.room_id} last_winner={self.last_winner}")
        if self.last_winner is None:
            self.start_rps()
        else:
            self.start_play(self.last_loser)

    # ---- chat / teardown ----

    def send_message(self, username: str, message) -> bool:
        with self.lock:
            if self.closed or username not in self.players:
                return False
            if not isinstance(message, str) or not message.strip():
                return False
            if len(message) > self.ctx.chat_max_length:
                return False
            self._broadcast('messageReceived', {
                'roomId': self.room_id,
                'username': username,
                'message': message,
                'timestamp': int(time.time() * 1000),
            })
            return True

    def close(self) -> None:
        with self.lock:
            self.closed = True
            self._cancel_timer()
            self._rps_round += 1


class SessionStore:
    """Live rooms by id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, GameSession] = {}

    def add(self, session: GameSession) -> GameSession:
        with self._lock:
            self._rooms[session.room_id] = session
        return session

    def get(self, room_id) -> Optional[GameSession]:
        with self._lock:
            return self._rooms.get(room_id)

    def remove(self, room_id) -> Optional[GameSession]:
        with self._lock:
            return self._rooms.pop(room_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
