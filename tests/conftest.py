import pytest
from duochat import create_app, db, limiter, socketio
from duochat.config import TestConfig

PASSWORD = 'Secret123'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    limiter.reset()
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registry(app):
    return app.extensions['duochat.registry']


def signup(client, email, full_name, password=PASSWORD):
    response = client.post('/api/auth/signup', json={
        'fullName': full_name,
        'email': email,
        'password': password,
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def session_token(client):
    cookie = client.get_cookie('jwt')
    assert cookie is not None
    return cookie.value


@pytest.fixture
def make_user(app):
    """Sign up a user on a fresh test client; returns (client, user dict)."""
    def _make(email, full_name):
        user_client = app.test_client()
        return user_client, signup(user_client, email, full_name)
    return _make


@pytest.fixture
def connect(app):
    """Open a Socket.IO test connection authenticated as the client's user."""
    opened = []

    def _connect(user_client):
        sio = socketio.test_client(app, auth={'token': session_token(user_client)})
        opened.append(sio)
        return sio

    yield _connect
    for sio in opened:
        if sio.is_connected():
            sio.disconnect()


def new_messages(sio):
    return [event['args'][0] for event in sio.get_received() if event['name'] == 'newMessage']
