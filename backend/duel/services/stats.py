from dataclasses import dataclass, field
from typing import Optional, Tuple

from duel import db, socketio
from duel.models import User


@dataclass(frozen=True)
class GameConcluded:
    room_id: str
    players: Tuple[str, ...] = field(default_factory=tuple)
    winner: Optional[str] = None
    loser: Optional[str] = None
    draw: bool = False


def record_win(username: str) -> None:
    _bump(username, 'wins')


def record_loss(username: str) -> None:
    _bump(username, 'losses')


def record_draw(username: str) -> None:
    _bump(username, 'draws')


def update_avatar(username: str, avatar) -> Optional[User]:
    user = User.query.filter_by(username=username).first()
    if not user:
        return None
    user.avatar = avatar
    db.session.add(user)
    db.session.commit()
    return user


def leaderboard_top(n: int):
    return [u.to_leaderboard_dict() for u in User.leaderboard(limit=n)]


def _bump(username: str, counter: str) -> None:
    # Column-level increment so concurrent writers don't lose updates
    updated = User.query.filter_by(username=username).update(
        {counter: getattr(User, counter) + 1}, synchronize_session=False
    )
    if not updated:
        raise LookupError(f'No user named {username!r}')


def apply_outcome(event: GameConcluded) -> None:
    """Write one finished game's counters in a single transaction."""
    try:
        if event.draw:
            for username in event.players:
                record_draw(username)
        else:
            record_win(event.winner)
            record_loss(event.loser)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


class DatabaseStatsSink:
    """Applies ``GameConcluded`` events to ``User`` counters off the game path.

    Runs as a background task (inline when TESTING) and retries with linear
    backoff. A write that still fails is logged and dropped; game state is
    never rolled back.
    """

    def __init__(self, app):
        self.app = app

    def submit(self, event: GameConcluded) -> None:
        if self.app.config.get('TESTING'):
            self._worker(event)
        else:
            socketio.start_background_task(self._worker, event)

    def _worker(self, event: GameConcluded) -> None:
        attempts = max(1, int(self.app.config.get('STATS_MAX_ATTEMPTS', 3)))
        delay = float(self.app.config.get('STATS_RETRY_DELAY_SEC', 0.5))
        with self.app.app_context():
            for attempt in range(1, attempts + 1):
                try:
                    apply_outcome(event)
                    self.app.logger.info(
                        f"[stats] room={event.room_id} winner={event.winner} loser={event.loser} draw={event.draw}"
                    )
                    return
                except Exception as exc:
                    self.app.logger.warning(
                        f"[stats-retry] room={event.room_id} attempt={attempt}/{attempts} error={exc}"
                    )
                    if attempt < attempts and delay > 0:
                        socketio.sleep(delay * attempt)
            self.app.logger.error(f"[stats-lost] room={event.room_id} event={event}")
