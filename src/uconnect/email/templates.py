"""
Email templates for UConnect.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

ACCENT = "#1F6FEB"
TEXT_PRIMARY = "#1F2328"
TEXT_SECONDARY = "#656D76"
BORDER = "#D0D7DE"


def _base_layout(content: str, app_name: str = "UConnect") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 32px 16px; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: {TEXT_PRIMARY};">
    <div style="max-width: 560px; margin: 0 auto; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">
        <h1 style="font-size: 22px; color: {ACCENT}; margin: 0 0 24px;">{app_name}</h1>
        {content}
        <p style="color: {TEXT_SECONDARY}; font-size: 12px; margin-top: 32px;">
            If you didn't sign up for {app_name}, you can safely ignore this email.
        </p>
    </div>
</body>
</html>"""


def verify_email(verify_url: str, name: str | None = None) -> tuple[str, str, str]:
    """Verification link sent on signup and on re-signup of an unverified account."""
    greeting = f"Hi {name}," if name else "Hi,"
    subject = "Verify your UConnect email"
    url = escape(verify_url, quote=True)
    html_body = _base_layout(
        f"""\
<p>{escape(greeting)}</p>
<p>Confirm your university email address to finish creating your account.</p>
<p style="margin: 28px 0;">
    <a href="{url}" style="background-color: {ACCENT}; color: #FFFFFF; padding: 12px 28px; border-radius: 8px; text-decoration: none; font-weight: 600;">Verify email</a>
</p>
<p style="color: {TEXT_SECONDARY}; font-size: 13px;">Or paste this link into your browser:<br>{url}</p>"""
    )
    text_body = (
        f"{greeting}\n\n"
        "Confirm your university email address to finish creating your account:\n\n"
        f"{verify_url}\n"
    )
    return subject, html_body, text_body
