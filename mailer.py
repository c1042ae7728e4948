# Outgoing email through Resend
import logging
from html import escape

import resend
from resend.exceptions import ResendError
from flask import current_app

logger = logging.getLogger(__name__)


class EmailError(Exception):
    pass


def send_email(to, subject, text, html, sender=None):
    params = {
        "from": sender or current_app.config['EMAIL_FROM'],
        "to": [to],
        "subject": subject,
        "text": text,
        "html": html
    }
    resend.api_key = current_app.config['RESEND_API_KEY']
    try:
        return resend.Emails.send(params)
    except ResendError as e:
        logger.error("Failed to send email to %s: %s", to, e)
        raise EmailError(str(e)) from e


def send_password_reset(user, token):
    reset_url = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
    return send_email(
        to=user.email,
        subject="Password Reset Request",
        text=f"You requested a password reset. Click the link to reset: {reset_url}",
        html=f'<p>You requested a password reset.</p><p><a href="{reset_url}">Reset your password</a></p>'
    )


def send_bug_report(bug):
    return send_email(
        to=current_app.config['BUG_REPORT_EMAIL'],
        subject="New Bug Report from DevMate",
        text=bug,
        html=f"<pre style='font-family:monospace;font-size:1rem;color:#333;'>{escape(bug)}</pre>"
    )


def notify_new_message(recipient, sender, message_text):
    """Email the recipient about a new direct message if they opted in.

    Failures are logged and never reach the caller.
    """
    if not (recipient.notify_new_message and recipient.email):
        return False
    sender_name = sender.display_name or sender.username
    try:
        send_email(
            to=recipient.email,
            subject="New message on DevMate!",
            text=f"{sender_name} sent you a new message: {message_text}",
            html=f"<p><b>{escape(sender_name)}</b> sent you a new message:</p>"
                 f"<blockquote>{escape(message_text)}</blockquote>"
        )
    except EmailError:
        logger.warning("New message email to user %s not delivered", recipient.user_id)
        return False
    return True
