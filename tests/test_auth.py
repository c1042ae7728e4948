import datetime

from models import db, User


def test_register_returns_token_and_user(client):
    response = client.post('/api/auth/register', json={
        "username": "alice",
        "email": "Alice@Example.com",
        "password": "secret123"
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body['token']
    assert body['user']['username'] == "alice"
    assert body['user']['email'] == "alice@example.com"
    assert body['user']['displayName'] == "alice"


def test_register_validation_errors(client):
    response = client.post('/api/auth/register', json={
        "username": "a!",
        "email": "not-an-email",
        "password": "123"
    })
    assert response.status_code == 400
    params = {error['param'] for error in response.get_json()['errors']}
    assert params == {"username", "email", "password"}


def test_register_rejects_bad_username_characters(client):
    response = client.post('/api/auth/register', json={
        "username": "bad name",
        "email": "bad@example.com",
        "password": "secret123"
    })
    assert response.status_code == 400
    assert "letters, numbers, and underscores" in response.get_json()['errors'][0]['msg']


def test_register_duplicates(client, register):
    register("alice")
    same_email = client.post('/api/auth/register', json={
        "username": "alice2", "email": "alice@example.com", "password": "secret123"
    })
    assert same_email.status_code == 400
    assert same_email.get_json()['message'] == "User with this email already exists"

    same_username = client.post('/api/auth/register', json={
        "username": "alice", "email": "other@example.com", "password": "secret123"
    })
    assert same_username.status_code == 400
    assert same_username.get_json()['message'] == "Username already taken"


def test_login(client, register):
    register("alice")
    response = client.post('/api/auth/login', json={"email": "alice@example.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.get_json()['user']['username'] == "alice"

    wrong = client.post('/api/auth/login', json={"email": "alice@example.com", "password": "nope123"})
    assert wrong.status_code == 400
    assert wrong.get_json()['message'] == "Invalid credentials"


def test_me_requires_token(client, register):
    assert client.get('/api/auth/me').status_code == 401
    bad = client.get('/api/auth/me', headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 401

    user, headers = register("alice")
    response = client.get('/api/auth/me', headers=headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body['id'] == user['id']
    assert body['skills'] == []
    assert body['notificationPreferences'] == {
        "newFollower": True, "newComment": True, "newMessage": True
    }


def test_ping(client, register):
    _, headers = register("alice")
    response = client.get('/api/auth/ping', headers=headers)
    assert response.status_code == 200
    assert response.get_json()['user'] == "alice"


def test_forgot_and_reset_password(app, client, register, sent_emails):
    register("alice")

    missing = client.post('/api/auth/forgot-password', json={"email": "nobody@example.com"})
    assert missing.status_code == 404

    response = client.post('/api/auth/forgot-password', json={"email": "alice@example.com"})
    assert response.status_code == 200
    assert len(sent_emails) == 1
    assert sent_emails[0]['to'] == ["alice@example.com"]

    with app.app_context():
        token = User.query.filter_by(username="alice").first().reset_password_token
    assert f"/reset-password?token={token}" in sent_emails[0]['text']

    reset = client.post('/api/auth/reset-password', json={"token": token, "password": "newsecret"})
    assert reset.status_code == 200

    reused = client.post('/api/auth/reset-password', json={"token": token, "password": "another1"})
    assert reused.status_code == 400

    login = client.post('/api/auth/login', json={"email": "alice@example.com", "password": "newsecret"})
    assert login.status_code == 200


def test_reset_password_with_expired_token(app, client, register):
    register("alice")
    with app.app_context():
        user = User.query.filter_by(username="alice").first()
        user.reset_password_token = "expired"
        user.reset_password_expires = datetime.datetime.utcnow() - datetime.timedelta(minutes=1)
        db.session.commit()

    response = client.post('/api/auth/reset-password', json={"token": "expired", "password": "newsecret"})
    assert response.status_code == 400
    assert response.get_json()['message'] == "Invalid or expired token."


def test_token_for_deleted_user_is_rejected(client, register):
    user, headers = register("alice")
    assert client.delete(f"/api/users/{user['id']}", headers=headers).status_code == 200
    assert client.get('/api/auth/me', headers=headers).status_code == 401


def test_reset_password_with_non_string_token(client, register):
    register("alice")
    response = client.post('/api/auth/reset-password', json={"token": ["x"], "password": "newsecret"})
    assert response.status_code == 400
    assert response.get_json()['message'] == "Invalid or expired token."
