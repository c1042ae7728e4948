import pytest

import mailer
from app import create_app
from models import db
from notify import socketio, user_socket_map


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    user_socket_map.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": f"email-{len(sent)}"}

    monkeypatch.setattr(mailer.resend.Emails, 'send', fake_send)
    return sent


@pytest.fixture
def register(client):
    def _register(username, email=None, password='secret123'):
        response = client.post('/api/auth/register', json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password
        })
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        return body['user'], {"Authorization": f"Bearer {body['token']}"}
    return _register


@pytest.fixture
def make_post(client):
    def _make_post(headers, content="Hello", code_snippet=None):
        payload = {"content": content}
        if code_snippet is not None:
            payload["codeSnippet"] = code_snippet
        response = client.post('/api/posts', json=payload, headers=headers)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _make_post


@pytest.fixture
def socket_client(app, client):
    clients = []

    def _connect(user_id):
        socket = socketio.test_client(app, query_string=f"userId={user_id}", flask_test_client=client)
        clients.append(socket)
        return socket

    yield _connect
    for socket in clients:
        if socket.is_connected():
            socket.disconnect()
