import pytest

from forms import (
    validate_email, validate_password, validate_username, validate_url,
    registration_errors, comment_errors, profile_errors, password_change_errors
)


@pytest.mark.parametrize("email,valid", [
    ("dev@example.com", True),
    ("first.last@sub.example.io", True),
    ("missing-at.example.com", False),
    ("two@@example.com", False),
    ("", False),
    (None, False),
])
def test_validate_email(email, valid):
    assert validate_email(email) is valid


def test_validate_password():
    assert validate_password("123456")
    assert not validate_password("12345")
    assert not validate_password(None)


def test_validate_username():
    assert validate_username("dev_42")
    assert not validate_username("ab")
    assert not validate_username("a" * 31)
    assert not validate_username("has-dash")


def test_validate_url():
    assert validate_url("https://github.com/alice")
    assert validate_url("github.com/alice")
    assert not validate_url("not a url")
    assert not validate_url("ftp://github.com")


def test_registration_errors_clean_payload():
    assert registration_errors({"username": "alice", "email": "a@example.com", "password": "secret"}) == []


def test_comment_errors_bounds():
    assert comment_errors({"text": "x"}) == []
    assert comment_errors({"text": "x" * 500}) == []
    assert comment_errors({"text": ""})[0]['param'] == "text"
    assert comment_errors({"text": "x" * 501})
    assert comment_errors({})


def test_profile_errors_allows_clearing_github_link():
    assert profile_errors({"githubLink": ""}) == []
    assert profile_errors({"notificationPreferences": {"newMessage": "yes"}})[0]['param'] == \
        "notificationPreferences"


def test_password_change_errors():
    errors = password_change_errors({"currentPassword": "", "newPassword": "abc", "confirmPassword": "abd"})
    assert [error['param'] for error in errors] == ["currentPassword", "newPassword", "confirmPassword"]


def test_profile_errors_rejects_null_github_link():
    assert profile_errors({"githubLink": None})[0]['param'] == "githubLink"


def test_password_change_errors_requires_string_current_password():
    errors = password_change_errors({"currentPassword": 123456, "newPassword": "abcdef",
                                     "confirmPassword": "abcdef"})
    assert [error['param'] for error in errors] == ["currentPassword"]
