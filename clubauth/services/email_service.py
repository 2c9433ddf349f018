"""
Email Service - transactional email through the Brevo HTTP API.

Sending is best effort: failures are logged and reported as ``False`` so a
failed email never fails the request that triggered it.
"""

import html
import logging

import httpx

from clubauth.config import Settings, get_settings

logger = logging.getLogger(__name__)

PASSWORD_RESET_SUBJECT = "🔐 Password Reset Request - SCT Coding Club"
ACCOUNT_SETUP_SUBJECT = "🔐 Complete Your Account Setup - SCT Coding Club"
WELCOME_SUBJECT = "🎉 Welcome to SCT Coding Club!"


class EmailService:
    """Send transactional emails."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client

    def reset_link(self, token: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/reset-password?token={token}"

    async def send_password_reset_email(
        self,
        email: str,
        name: str,
        token: str,
        expires_in_minutes: int,
        is_first_time_setup: bool = False,
    ) -> bool:
        """
        Send a password reset link.

        Args:
            email: Recipient address
            name: Recipient display name
            token: Single-use reset token
            expires_in_minutes: Link lifetime shown in the email
            is_first_time_setup: The account has never had a password

        Returns:
            True if the API accepted the email
        """
        link = html.escape(self.reset_link(token), quote=True)
        safe_name = html.escape(name)
        if is_first_time_setup:
            subject = ACCOUNT_SETUP_SUBJECT
            intro = (
                "Your account is verified but has no password yet. "
                "Set one to finish setting up your account."
            )
            action = "Set Password"
        else:
            subject = PASSWORD_RESET_SUBJECT
            intro = (
                "We received a request to reset your password. "
                "If you did not make this request you can ignore this email."
            )
            action = "Reset Password"

        body = (
            f"<p>Hi {safe_name},</p>"
            f"<p>{intro}</p>"
            f'<p><a href="{link}">{action}</a></p>'
            f"<p>This link expires in {expires_in_minutes} minutes.</p>"
        )
        return await self._send(email, name, subject, body)

    async def send_welcome_email(self, email: str, name: str) -> bool:
        safe_name = html.escape(name)
        body = (
            f"<p>Hi {safe_name},</p>"
            "<p>Welcome to SCT Coding Club! Your account is ready.</p>"
            f"<p>You are signed in as {html.escape(email)}.</p>"
        )
        return await self._send(email, name, WELCOME_SUBJECT, body)

    async def _send(self, to: str, to_name: str, subject: str, html_content: str) -> bool:
        if not self.settings.brevo_api_key:
            logger.warning(f"Email not sent to {to}: Brevo API key not configured")
            return False

        payload = {
            "sender": {
                "name": self.settings.email_sender_name,
                "email": self.settings.email_sender_address,
            },
            "to": [{"email": to, "name": to_name}],
            "subject": subject,
            "htmlContent": html_content,
        }
        headers = {
            "accept": "application/json",
            "api-key": self.settings.brevo_api_key,
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.settings.brevo_api_url, json=payload, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(
                        self.settings.brevo_api_url, json=payload, headers=headers
                    )
        except httpx.HTTPError as e:
            logger.error(f"Email service error sending to {to}: {e}")
            return False

        if not response.is_success:
            logger.error(f"Email send failed: HTTP {response.status_code} {response.text}")
            return False

        logger.info(f"Email sent to {to}: {subject}")
        return True
