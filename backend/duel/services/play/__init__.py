"""Session orchestration: presence, pairing, rooms and turn timers.

Pure(ish) game logic lives here; ``duel.socketio_events`` only translates
socket events into ``Arena`` calls, keeping transport concerns separated
from the room state machine.
"""

import random

from duel import socketio
from duel.services.stats import DatabaseStatsSink
from .arena import Arena
from .session import GameSession, Phase, PlayContext, SessionStore

NAMESPACE = '/ws'


class SocketNotifier:
    """Delivers named events to a socket id, or to every connection."""

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace

    def emit(self, event: str, payload, to: str) -> None:
        # socketio.emit works from handlers and background tasks alike
        socketio.emit(event, payload, to=to, namespace=self.namespace)

    def broadcast(self, event: str, payload) -> None:
        socketio.emit(event, payload, namespace=self.namespace)


def build_arena(app) -> Arena:
    timers_enabled = not app.config.get('TESTING') or bool(app.config.get('ENABLE_TIMERS_IN_TESTS'))
    ctx = PlayContext(
        notifier=SocketNotifier(),
        stats_sink=DatabaseStatsSink(app),
        logger=app.logger,
        spawn=socketio.start_background_task,
        sleep=socketio.sleep,
        rng=random.SystemRandom(),
        turn_duration=int(app.config.get('TURN_DURATION_SEC', 5)),
        reveal_delay=float(app.config.get('RPS_REVEAL_DELAY_SEC', 3)),
        timers_enabled=timers_enabled,
        chat_max_length=int(app.config.get('CHAT_MAX_LENGTH', 500)),
    )
    return Arena(ctx)


__all__ = ['NAMESPACE', 'Arena', 'GameSession', 'Phase', 'PlayContext', 'SessionStore', 'SocketNotifier', 'build_arena']
