import os
import sys
from collections import namedtuple

import pytest

# Ensure the backend root (containing the `froggyhub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from froggyhub import create_app, db, socketio
from froggyhub.services.events import throttle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:5173']
    PUBLIC_BASE_URL = 'https://froggyhub.test/'
    CODE_TTL_DAYS = 14
    JOIN_CODE_ATTEMPTS = 5
    CODE_LOOKUP_LIMIT = 0
    CODE_LOOKUP_WINDOW_SEC = 60
    MAX_WISHLIST_ITEMS = 5
    MIN_PASSWORD_LENGTH = 6
    TOKEN_MAX_AGE_SEC = 3600
    LOGIN_LINK_MAX_AGE_SEC = 900
    LOGIN_LINK_SENDER = None


Member = namedtuple('Member', 'client token user')


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    throttle.reset()
    with application.app_context():
        # Ensure models are imported so tables are created
        import froggyhub.models  # noqa: F401
        db.create_all()
    # Requests push their own app context so flask_login does not cache
    # the user on a shared `g` across clients.
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
    throttle.reset()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_member(flask_app):
    """Register a user on a fresh test client (one client per user)."""
    def _make(nickname, email=None, password='password'):
        c = flask_app.test_client()
        res = c.post('/api/auth/register', json={
            'email': email or f'{nickname.lower()}@example.com',
            'password': password,
            'nickname': nickname,
        })
        assert res.status_code == 201, res.get_json()
        body = res.get_json()
        return Member(c, body['token'], body['user'])
    return _make


@pytest.fixture()
def host(make_member):
    return make_member('Host')


@pytest.fixture()
def guest(make_member):
    return make_member('Guest')


@pytest.fixture()
def party(host):
    """An event owned by `host` with three gifts."""
    res = host.client.post('/api/events', json={
        'title': 'Frog birthday',
        'date': '2030-06-01',
        'time': '18:30',
        'address': 'Big pond',
        'dress': 'green',
        'bring': 'snacks',
        'notes': 'bring a towel',
        'wishlist': [
            {'title': 'Lily pad', 'url': 'https://shop.test/pad'},
            {'title': '', 'url': ''},
            {'title': 'Fly swatter', 'url': ''},
            {'title': '', 'url': 'https://shop.test/mystery'},
        ],
    })
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def joined_guest(guest, party):
    res = guest.client.post('/api/events/join', json={'code': party['event']['join_code']})
    assert res.status_code == 200, res.get_json()
    return guest


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
