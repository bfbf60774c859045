"""
Pytest configuration and fixtures for LunaExecutor tests
"""

import pytest
from werkzeug.security import generate_password_hash

from lunaexecutor import create_app, db, socketio
from lunaexecutor.config import TestingConfig
from lunaexecutor.relay import CHAT_NAMESPACE
from lunaexecutor.repository import get_repository


DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="function")
def app():
    """
    Fresh app on an in-memory SQLite database
    """
    app = create_app(TestingConfig)

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """
    Anonymous HTTP client
    """
    return app.test_client()


@pytest.fixture(scope="function")
def make_user(app):
    """
    Create a user straight through the repository, returns its id
    """

    def _make_user(username, password=DEFAULT_PASSWORD, admin=False):
        with app.app_context():
            repository = get_repository()
            user = repository.create_user(
                username,
                f"{username}@lunaexecutor.com",
                generate_password_hash(password, method="pbkdf2:sha256"),
            )
            if admin:
                repository.set_admin(user)
            return user.id

    return _make_user


@pytest.fixture(scope="function")
def login(app):
    """
    Log a user in, returns the HTTP client holding the session cookie
    """

    def _login(username, password=DEFAULT_PASSWORD):
        http = app.test_client()
        response = http.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return http

    return _login


@pytest.fixture(scope="function")
def chat_client(app):
    """
    Open a Socket.IO connection on the chat namespace, optionally sharing the
    cookies of a logged-in HTTP client
    """
    opened = []

    def _connect(http=None):
        sio = socketio.test_client(
            app, namespace=CHAT_NAMESPACE, flask_test_client=http
        )
        opened.append(sio)
        return sio

    yield _connect

    for sio in opened:
        if sio.is_connected(CHAT_NAMESPACE):
            sio.disconnect(namespace=CHAT_NAMESPACE)
