import os
import sys
import pytest

# Ensure the backend root (containing the `scoreboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from scoreboard import create_app, db, socketio
from scoreboard.broadcast import EXTENSION_KEY


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LEADERBOARD_SIZE = 10
    RECENT_ACTIVITY_DEFAULT = 25
    RECENT_ACTIVITY_MAX = 50


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import scoreboard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def broadcaster(flask_app):
    return flask_app.extensions[EXTENSION_KEY]


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


@pytest.fixture()
def make_player(client):
    def _make(name):
        res = client.post('/api/players', json={'name': name})
        assert res.status_code == 201, res.get_json()
        return res.get_json()
    return _make


@pytest.fixture()
def clock(monkeypatch):
    """Controls the ledger's insert timestamp: set ``clock.now`` before awarding."""
    from scoreboard.services import ledger

    class _Clock:
        now = 1_700_000_000

    monkeypatch.setattr(ledger, '_now', lambda: _Clock.now)
    return _Clock
