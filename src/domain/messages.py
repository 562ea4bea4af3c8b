"""
Email composition - Subjects, HTML and plain-text bodies.

Templates use str.format placeholders; every user-controlled value is
HTML-escaped before it is substituted into an HTML body.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from html import escape

from .models import Account, ClientInfo, EmailMessage

_TAG_PATTERN = re.compile(r"<[^>]*>")


def strip_html(html_body: str) -> str:
    """Derive a plain-text body by removing tags and collapsing blank lines."""
    text = _TAG_PATTERN.sub("", html_body)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
<div style="max-width: 600px; margin: 0 auto; padding: 20px;">
<h1>{heading}</h1>
<h2>Hi {name}!</h2>
{content}
<p style="text-align: center; color: #666; font-size: 12px;">{footer}</p>
</div>
</body>
</html>
"""

_BUTTON = '<p><a href="{url}" style="display: inline-block; background: {color}; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px;">{label}</a></p>'

VERIFICATION_TEXT = """Hi {name}!

Thank you for registering with {app_name}. To complete your registration, verify your email address by opening this link:

{url}

This verification link will expire in {hours} hours. If you didn't create an account with {app_name}, please ignore this email.
"""

WELCOME_TEXT = """Hi {name}!

Thank you for verifying your email and joining {app_name}. Your account is now fully activated and ready to use.

Go to your dashboard: {url}

Best regards,
The {app_name} Team
"""

PASSWORD_RESET_TEXT = """Hi {name}!

We received a request to reset your password for your {app_name} account. Open this link to choose a new password:

{url}

- This link will expire in {hours} hour(s)
- If you didn't request this reset, please ignore this email
- Your password will not change unless you open the link above
"""

LOGIN_NOTIFICATION_TEXT = """Hi {name}!

We detected a new login to your {app_name} account. If this was you, you can safely ignore this email.

Time: {time}
IP Address: {ip_address}
Device: {device}
Browser: {browser}

If you didn't log in at this time, your account may have been compromised. Reset your password immediately: {url}

Stay safe,
The {app_name} Security Team
"""

AUTOMATED_FOOTER = "This is an automated message, please do not reply to this email."


def describe_browser(user_agent: str | None) -> str:
    if not user_agent:
        return "Unknown Browser"
    # Edge and Chrome user agents both contain "Chrome"; Chrome's also contains "Safari"
    if "Edg" in user_agent:
        return "Edge"
    if "Chrome" in user_agent:
        return "Chrome"
    if "Firefox" in user_agent:
        return "Firefox"
    if "Safari" in user_agent:
        return "Safari"
    return "Unknown Browser"


def describe_device(user_agent: str | None) -> str:
    if user_agent and "Mobile" in user_agent:
        return "Mobile Device"
    if user_agent and "Tablet" in user_agent:
        return "Tablet"
    return "Desktop/Laptop"


def format_login_time(when: datetime) -> str:
    return when.strftime("%A, %B %d, %Y at %I:%M %p %Z").strip()


@dataclass(frozen=True)
class MessageComposer:
    """Builds the lifecycle emails for one application identity."""

    app_name: str
    app_url: str
    verification_ttl_hours: int = 24
    reset_ttl_hours: int = 1

    def _link(self, path: str) -> str:
        return f"{self.app_url.rstrip('/')}{path}"

    def _html(self, heading: str, name: str, content: str, footer: str = AUTOMATED_FOOTER) -> str:
        return _LAYOUT.format(
            heading=escape(heading), name=escape(name), content=content, footer=escape(footer)
        )

    def verification(self, account: Account, token: str) -> EmailMessage:
        url = self._link(f"/verify?token={token}")
        content = (
            f"<p>Thank you for registering with {escape(self.app_name)}. To complete your "
            "registration, please verify your email address by clicking the button below:</p>"
            + _BUTTON.format(url=escape(url), color="#667eea", label="Verify Email Address")
            + f"<p>Or copy and paste this link into your browser:</p><p>{escape(url)}</p>"
            + f"<p><strong>Security Notice:</strong> This verification link will expire in "
            f"{self.verification_ttl_hours} hours. If you didn't create an account with "
            f"{escape(self.app_name)}, please ignore this email.</p>"
        )
        return EmailMessage(
            to=account.email,
            subject="Verify your email address",
            html_body=self._html("Verify Your Email", account.greeting_name, content),
            text_body=VERIFICATION_TEXT.format(
                name=account.greeting_name,
                app_name=self.app_name,
                url=url,
                hours=self.verification_ttl_hours,
            ),
        )

    def welcome(self, account: Account) -> EmailMessage:
        url = self._link("/dashboard")
        content = (
            f"<p>Thank you for verifying your email and joining {escape(self.app_name)}. "
            "We're excited to have you on board!</p>"
            "<p>Your account is now fully activated and ready to use.</p>"
            + _BUTTON.format(url=escape(url), color="#667eea", label="Go to Dashboard")
            + f"<p>Best regards,<br>The {escape(self.app_name)} Team</p>"
        )
        return EmailMessage(
            to=account.email,
            subject=f"Welcome to {self.app_name}!",
            html_body=self._html(f"Welcome to {self.app_name}!", account.greeting_name, content),
            text_body=WELCOME_TEXT.format(
                name=account.greeting_name, app_name=self.app_name, url=url
            ),
        )

    def password_reset(self, account: Account, token: str) -> EmailMessage:
        url = self._link(f"/reset-password?token={token}")
        content = (
            f"<p>We received a request to reset your password for your {escape(self.app_name)} "
            "account. Click the button below to create a new password:</p>"
            + _BUTTON.format(url=escape(url), color="#dc3545", label="Reset Password")
            + f"<p>Or copy and paste this link into your browser:</p><p>{escape(url)}</p>"
            + "<ul>"
            f"<li>This link will expire in {self.reset_ttl_hours} hour(s)</li>"
            "<li>If you didn't request this reset, please ignore this email</li>"
            "<li>Your password will not change unless you click the link above</li>"
            "</ul>"
        )
        return EmailMessage(
            to=account.email,
            subject="Reset your password",
            html_body=self._html("Password Reset Request", account.greeting_name, content),
            text_body=PASSWORD_RESET_TEXT.format(
                name=account.greeting_name,
                app_name=self.app_name,
                url=url,
                hours=self.reset_ttl_hours,
            ),
        )

    def login_notification(
        self, account: Account, client: ClientInfo, when: datetime
    ) -> EmailMessage:
        url = self._link("/reset")
        browser = describe_browser(client.user_agent)
        device = describe_device(client.user_agent)
        time_text = format_login_time(when)

        rows = [("Time", time_text)]
        if client.ip_address:
            rows.append(("IP Address", client.ip_address))
        rows.extend([("Device", device), ("Browser", browser)])
        details = "".join(
            f"<div><strong>{label}:</strong> {escape(value)}</div>" for label, value in rows
        )

        content = (
            f"<p>We detected a new login to your {escape(self.app_name)} account. "
            "If this was you, you can safely ignore this email.</p>"
            f"<h3>Login Details:</h3>{details}"
            "<p><strong>Wasn't you?</strong> If you didn't log in at this time, your account "
            "may have been compromised. Please secure your account immediately:</p>"
            + _BUTTON.format(url=escape(url), color="#dc3545", label="Reset Your Password")
            + f"<p>Stay safe,<br>The {escape(self.app_name)} Security Team</p>"
        )
        return EmailMessage(
            to=account.email,
            subject=f"New login to your {self.app_name} account",
            html_body=self._html(
                "New Login Detected",
                account.greeting_name,
                content,
                footer="This is an automated security notification. Please do not reply to this email.",
            ),
            text_body=LOGIN_NOTIFICATION_TEXT.format(
                name=account.greeting_name,
                app_name=self.app_name,
                time=time_text,
                ip_address=client.ip_address or "Unknown",
                device=device,
                browser=browser,
                url=url,
            ),
        )
