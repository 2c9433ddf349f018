"""
Google OAuth Router

Sign in with Google: consent URL, callback, and unlinking.
"""

from fastapi import APIRouter, Query

from clubauth.core.auth import AuthServiceDep, Client, CurrentUser
from clubauth.core.exceptions import ValidationError
from clubauth.models.contracts.auth import GoogleAuthTokens, GoogleAuthUrlResponse, PublicUser
from clubauth.models.contracts.common import MessageResponse, SuccessResponse

router = APIRouter(prefix="/auth/google", tags=["google-oauth"])


@router.get("", response_model=SuccessResponse[GoogleAuthUrlResponse])
async def google_initiate(
    auth_service: AuthServiceDep,
    signup: bool = Query(default=False, description="Show Google's account chooser"),
) -> SuccessResponse[GoogleAuthUrlResponse]:
    """Build the Google consent URL."""
    url = auth_service.google_authorization_url(signup=signup)
    return SuccessResponse(data=GoogleAuthUrlResponse(auth_url=url))


@router.get("/callback", response_model=SuccessResponse[GoogleAuthTokens])
async def google_callback(
    auth_service: AuthServiceDep,
    client: Client,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
) -> SuccessResponse[GoogleAuthTokens]:
    """
    Exchange the authorization code and sign the user in.

    ``is_new_user`` tells the client whether an account was just created.
    """
    if not code or not state:
        raise ValidationError("Missing authorization code or state")

    result = await auth_service.google_callback(code, client)
    return SuccessResponse(
        data=GoogleAuthTokens(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            expires_in=result.expires_in,
            user=PublicUser.model_validate(result.user),
            is_new_user=result.is_new_user,
        )
    )


@router.delete("", response_model=MessageResponse)
async def google_disconnect(
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Unlink Google. Refused when the account has no password."""
    await auth_service.disconnect_google(current_user)
    return MessageResponse(message="Google account disconnected successfully")
