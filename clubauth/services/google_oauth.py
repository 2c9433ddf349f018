"""
Google OAuth Service - sign in with Google.

Builds the consent URL, exchanges the authorization code for an access token
and reads the user's profile from the userinfo endpoint.
"""

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import AuthError, UpstreamUnavailableError, ValidationError

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = "openid email profile"


@dataclass
class GoogleUserInfo:
    """Subset of the Google userinfo response."""

    google_id: str
    email: str
    name: str | None = None
    picture: str | None = None


class GoogleOAuthNotConfiguredError(AuthError):
    status_code = 500
    error = "oauth_not_configured"


class GoogleOAuthClient:
    """Service for Google OAuth 2.0 operations."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client

    def _require_config(self) -> None:
        if not self.settings.google_configured:
            raise GoogleOAuthNotConfiguredError("Google OAuth not configured")

    @staticmethod
    def generate_state() -> str:
        """Generate a random state value for the authorization request."""
        return secrets.token_urlsafe(32)

    def build_authorization_url(self, signup: bool = False) -> str:
        """
        Build the Google consent screen URL.

        Args:
            signup: Ask Google to show the account chooser

        Returns:
            URL to redirect the browser to
        """
        self._require_config()
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "access_type": "online",
            "state": self.generate_state(),
        }
        if signup:
            params["prompt"] = "select_account"
        return f"{self.settings.google_authorize_url}?{urlencode(params)}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=10.0) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Google request to {url} failed: {e}")
            raise UpstreamUnavailableError("Could not reach Google") from e

    async def exchange_code(self, code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Authorization code from the callback

        Returns:
            Google access token

        Raises:
            ValidationError: If Google rejects the code
        """
        self._require_config()
        response = await self._request(
            "POST",
            self.settings.google_token_url,
            data={
                "code": code,
                "client_id": self.settings.google_client_id or "",
                "client_secret": self.settings.google_client_secret or "",
                "redirect_uri": self.settings.google_redirect_uri or "",
                "grant_type": "authorization_code",
            },
        )
        if not response.is_success:
            logger.error(f"Google token exchange failed: HTTP {response.status_code} {response.text}")
            raise ValidationError("Failed to exchange authorization code")

        access_token = response.json().get("access_token")
        if not access_token:
            raise ValidationError("Failed to exchange authorization code")
        return access_token

    async def get_user_info(self, access_token: str) -> GoogleUserInfo:
        """
        Fetch the signed-in user's Google profile.

        Raises:
            ValidationError: If the userinfo call fails or lacks id/email
        """
        response = await self._request(
            "GET",
            self.settings.google_userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not response.is_success:
            logger.error(f"Google userinfo failed: HTTP {response.status_code}")
            raise ValidationError("Failed to get user info from Google")

        data = response.json()
        # v2 endpoint uses "id", OIDC userinfo uses "sub"
        google_id = data.get("id") or data.get("sub")
        email = data.get("email")
        if not google_id or not email:
            raise ValidationError("Failed to get user info from Google")

        return GoogleUserInfo(
            google_id=str(google_id),
            email=email,
            name=data.get("name"),
            picture=data.get("picture"),
        )
