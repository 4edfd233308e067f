import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure the backend root (containing the `solsnake` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from solsnake import create_app, db, socketio
from solsnake.services.competition.clock import PeriodClock
from solsnake.services.competition.rollover import RolloverEngine
from solsnake.services.competition.store import MemoryEntityStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STATE_BACKEND = 'sql'
    RESET_TIMEZONE = 'America/Denver'
    RESET_HOUR_LOCAL = 13
    PERIOD_HOURS = 24
    LEADERBOARD_SIZE = 5
    POT_FRACTION = 0.9
    REQUIRE_PAYMENT = False
    CORS_ORIGINS = ['http://localhost:5173']


# 2025-06-10 13:00 America/Denver (MDT) is 19:00 UTC
DAY = '2025-06-10'
NEXT_DAY = '2025-06-11'
DAY_OPEN = datetime(2025, 6, 10, 20, 0, tzinfo=timezone.utc)
NEXT_DAY_OPEN = datetime(2025, 6, 11, 19, 30, tzinfo=timezone.utc)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import solsnake.models  # noqa: F401
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


@pytest.fixture()
def store():
    return MemoryEntityStore()


@pytest.fixture()
def clock():
    return PeriodClock(reset_hour_local=13, timezone_name='America/Denver')


@pytest.fixture()
def engine(store, clock):
    return RolloverEngine(store, clock, leaderboard_size=5, pot_fraction=0.9)
