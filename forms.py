# Request validation helpers
import re
from urllib.parse import urlparse

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$')
USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')

MIN_PASSWORD_LENGTH = 6
MAX_POST_LENGTH = 2000
MAX_SNIPPET_LENGTH = 5000
MAX_COMMENT_LENGTH = 500
MAX_BIO_LENGTH = 500
MAX_DISPLAY_NAME_LENGTH = 50
MAX_MESSAGE_LENGTH = 2000


def validate_email(email):
    return isinstance(email, str) and EMAIL_PATTERN.match(email) is not None


def validate_password(password):
    return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


def validate_username(username):
    return isinstance(username, str) \
        and 3 <= len(username) <= 30 \
        and USERNAME_PATTERN.match(username) is not None


def validate_url(value):
    if not isinstance(value, str):
        return False
    parsed = urlparse(value if '://' in value else f'http://{value}')
    return parsed.scheme in ('http', 'https') and '.' in parsed.netloc


def _length_between(value, low, high):
    return isinstance(value, str) and low <= len(value) <= high


def _error(param, msg):
    return {"param": param, "msg": msg}


def registration_errors(data):
    errors = []
    if not validate_username(data.get('username')):
        if not _length_between(data.get('username'), 3, 30):
            errors.append(_error('username', "Username must be between 3 and 30 characters"))
        else:
            errors.append(_error('username', "Username can only contain letters, numbers, and underscores"))
    if not validate_email(data.get('email')):
        errors.append(_error('email', "Please provide a valid email"))
    if not validate_password(data.get('password')):
        errors.append(_error('password', "Password must be at least 6 characters long"))
    return errors


def login_errors(data):
    errors = []
    if not validate_email(data.get('email')):
        errors.append(_error('email', "Please provide a valid email"))
    if not isinstance(data.get('password'), str):
        errors.append(_error('password', "Password is required"))
    return errors


def post_errors(data):
    errors = []
    if not _length_between(data.get('content'), 1, MAX_POST_LENGTH):
        errors.append(_error('content', "Content must be between 1 and 2000 characters"))
    snippet = data.get('codeSnippet')
    if snippet is not None and not _length_between(snippet, 0, MAX_SNIPPET_LENGTH):
        errors.append(_error('codeSnippet', "Code snippet must be less than 5000 characters"))
    return errors


def comment_errors(data):
    if not _length_between(data.get('text'), 1, MAX_COMMENT_LENGTH):
        return [_error('text', "Comment must be between 1 and 500 characters")]
    return []


def profile_errors(data):
    errors = []
    if 'displayName' in data and not _length_between(data['displayName'], 1, MAX_DISPLAY_NAME_LENGTH):
        errors.append(_error('displayName', "Display name must be between 1 and 50 characters"))
    if 'bio' in data and not _length_between(data['bio'], 0, MAX_BIO_LENGTH):
        errors.append(_error('bio', "Bio must be less than 500 characters"))
    if 'skills' in data and not (isinstance(data['skills'], list)
                                 and all(isinstance(skill, str) for skill in data['skills'])):
        errors.append(_error('skills', "Skills must be an array"))
    # empty string clears the link
    if 'githubLink' in data and not (data['githubLink'] == '' or validate_url(data['githubLink'])):
        errors.append(_error('githubLink', "GitHub link must be a valid URL"))
    preferences = data.get('notificationPreferences')
    if preferences is not None and not (isinstance(preferences, dict)
                                        and all(isinstance(v, bool) for v in preferences.values())):
        errors.append(_error('notificationPreferences', "Notification preferences must be true/false flags"))
    return errors


def password_change_errors(data):
    errors = []
    if not isinstance(data.get('currentPassword'), str) or not data['currentPassword']:
        errors.append(_error('currentPassword', "Current password is required"))
    if not validate_password(data.get('newPassword')):
        errors.append(_error('newPassword', "New password must be at least 6 characters"))
    if data.get('confirmPassword') != data.get('newPassword'):
        errors.append(_error('confirmPassword', "Passwords do not match"))
    return errors
