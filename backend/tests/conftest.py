import logging
import os
import random
import sys
import pytest

# Ensure the backend root (containing the `duel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from duel import create_app, db, socketio
from duel.services.play import Arena, PlayContext


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    JWT_SECRET = 'test-jwt-secret'
    JWT_EXPIRE_MINUTES = 5
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    TURN_DURATION_SEC = 5
    RPS_REVEAL_DELAY_SEC = 0
    LEADERBOARD_SIZE = 10
    STATS_MAX_ATTEMPTS = 2
    STATS_RETRY_DELAY_SEC = 0
    CHAT_MAX_LENGTH = 500


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import duel.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


# ---- service-level fakes ----

class RecordingNotifier:
    def __init__(self):
        self.sent = []  # (event, payload, to)

    def emit(self, event, payload, to):
        self.sent.append((event, payload, to))

    def broadcast(self, event, payload):
        self.sent.append((event, payload, None))

    def events(self, name, to=None):
        return [p for e, p, t in self.sent if e == name and (to is None or t == to)]

    def names(self):
        return [e for e, _, _ in self.sent]

    def clear(self):
        self.sent.clear()


class RecordingSink:
    def __init__(self):
        self.events = []

    def submit(self, event):
        self.events.append(event)


class ManualScheduler:
    """Collects spawned tasks; tests run them explicitly."""

    def __init__(self):
        self.tasks = []
        self.slept = []

    def spawn(self, fn, *args):
        self.tasks.append((fn, args))

    def sleep(self, seconds):
        self.slept.append(seconds)

    def run_next(self):
        fn, args = self.tasks.pop(0)
        fn(*args)

    def run_all(self):
        while self.tasks:
            self.run_next()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def make_ctx(notifier, sink, scheduler):
    def _make(**overrides):
        params = dict(
            notifier=notifier,
            stats_sink=sink,
            logger=logging.getLogger('duel-tests'),
            spawn=scheduler.spawn,
            sleep=scheduler.sleep,
            rng=random.Random(7),
            turn_duration=5,
            reveal_delay=0,
            timers_enabled=False,
        )
        params.update(overrides)
        return PlayContext(**params)
    return _make


@pytest.fixture()
def arena(make_ctx):
    return Arena(make_ctx())
