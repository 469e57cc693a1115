import os
import random
import sys
import pytest

# Ensure the backend root (containing the `surveysez` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from surveysez import create_app, db, socketio, DEV_CATEGORIES
from surveysez.services.games.records import GameSettings
from surveysez.services.games.room import Room


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    DEFAULT_TIME_LIMIT_SEC = 30
    DEFAULT_TURNS_PER_TEAM = 1
    RESULTS_TIMEOUT_SEC = 15
    CONTINUE_TIMEOUT_SEC = 15


class FakeClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


SHARED = {
    'universal': [
        {'id': 'fruit', 'name': 'Fruit', 'entries': ['Apple', 'Banana', 'Orange']},
        {'id': 'animals', 'name': 'Animals', 'entries': ['Dog', 'Cat', 'Lion']},
        {'id': 'colors', 'name': 'Colors', 'entries': ['Red', 'Blue', 'Green']},
    ],
    'custom': {},
}


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_room(clock):
    """Build a room with teams Red (alice, bob) and Blue (carol, dave), all connected."""
    def _make(categories=None, settings=None, players=True, seed=7):
        room = Room('r1', categories if categories is not None else SHARED,
                    settings=settings or GameSettings(time_limit=30, turns_per_team=2,
                                                      results_timeout_ms=15000, continue_timeout_ms=15000),
                    clock=clock, rng=random.Random(seed))
        if players:
            room.add_player('sid-a', 'alice', 'Alice', 'Red')
            room.add_player('sid-c', 'carol', 'Carol', 'Blue')
            room.add_player('sid-b', 'bob', 'Bob', 'Red')
            room.add_player('sid-d', 'dave', 'Dave', 'Blue')
        return room
    return _make


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import surveysez.models  # noqa: F401
        from surveysez.services.games.persistence import SqlStorage
        db.create_all()
        SqlStorage().save_categories(DEV_CATEGORIES)
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
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
