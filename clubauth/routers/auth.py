"""
Authentication Router

Provides endpoints for password based authentication:
- Signup / EtLab signup completion
- Login
- Access token refresh
- Logout (client side token disposal)
- Current user info and profile updates
- Password reset
"""

from fastapi import APIRouter

from clubauth.core.auth import AuthServiceDep, Client, CurrentUser
from clubauth.models.contracts.auth import (
    AccessTokenResponse,
    AuthTokens,
    LoginRequest,
    PasswordResetRequest,
    PasswordResetVerifyRequest,
    PublicUser,
    RefreshTokenRequest,
    SignupCompleteRequest,
    SignupRequest,
    UpdateProfileRequest,
    UserProfile,
)
from clubauth.models.contracts.common import MessageResponse, SuccessResponse
from clubauth.services.auth_service import TokenPair

router = APIRouter(prefix="/auth", tags=["auth"])


def to_auth_tokens(pair: TokenPair) -> AuthTokens:
    return AuthTokens(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        user=PublicUser.model_validate(pair.user),
    )


@router.post("/signup", response_model=SuccessResponse[AuthTokens])
async def signup(
    body: SignupRequest,
    auth_service: AuthServiceDep,
    client: Client,
) -> SuccessResponse[AuthTokens]:
    """
    Create an account with email and password.

    Raises:
        ConflictError: If the email is already registered (400)
    """
    pair = await auth_service.signup(
        email=body.email,
        name=body.name.strip(),
        password=body.password,
        phone=body.phone,
        profile_photo=body.profile_photo,
        profile_photo_filename=body.profile_photo_filename,
        client=client,
    )
    return SuccessResponse(data=to_auth_tokens(pair))


@router.post("/signup/complete", response_model=SuccessResponse[AuthTokens])
async def signup_complete(
    body: SignupCompleteRequest,
    auth_service: AuthServiceDep,
    client: Client,
) -> SuccessResponse[AuthTokens]:
    """Set a password for an account created through EtLab signup."""
    pair = await auth_service.complete_signup(
        signup_token=body.signup_token,
        password=body.password,
        phone=body.phone,
        profile_photo=body.profile_photo,
        profile_photo_filename=body.profile_photo_filename,
        client=client,
    )
    return SuccessResponse(data=to_auth_tokens(pair))


@router.post("/login", response_model=SuccessResponse[AuthTokens])
async def login(
    body: LoginRequest,
    auth_service: AuthServiceDep,
    client: Client,
) -> SuccessResponse[AuthTokens]:
    """
    Login with email and password.

    Raises:
        UnauthorizedError: If credentials are invalid (401)
    """
    pair = await auth_service.login(body.email, body.password, client)
    return SuccessResponse(data=to_auth_tokens(pair))


@router.post("/refresh", response_model=SuccessResponse[AccessTokenResponse])
async def refresh_token(
    body: RefreshTokenRequest,
    auth_service: AuthServiceDep,
) -> SuccessResponse[AccessTokenResponse]:
    """
    Mint a new access token.

    The refresh token is not rotated and stays valid until it expires or
    the user resets their password.
    """
    token = await auth_service.refresh(body.refresh_token)
    return SuccessResponse(
        data=AccessTokenResponse(access_token=token.access_token, expires_in=token.expires_in)
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser, auth_service: AuthServiceDep) -> MessageResponse:
    message = await auth_service.logout(current_user)
    return MessageResponse(message=message)


@router.get("/me", response_model=SuccessResponse[UserProfile])
async def get_current_user_info(
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserProfile]:
    """Get current authenticated user information."""
    user = await auth_service.get_current_user(current_user.id)
    return SuccessResponse(data=UserProfile.from_user(user))


@router.put("/profile", response_model=SuccessResponse[UserProfile])
async def update_profile(
    body: UpdateProfileRequest,
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[UserProfile]:
    """
    Partially update the current user's profile.

    Raises:
        ConflictError: Email already in use (400)
        ValidationError: No valid fields to update (400)
    """
    user = await auth_service.update_profile(current_user, body.model_dump(exclude_unset=True))
    return SuccessResponse(data=UserProfile.from_user(user))


@router.post("/password/reset", response_model=MessageResponse)
async def request_password_reset(
    body: PasswordResetRequest,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Send a reset link. Always succeeds so accounts cannot be enumerated."""
    message = await auth_service.request_password_reset(body.email)
    return MessageResponse(message=message)


@router.post("/password/reset/verify", response_model=MessageResponse)
async def verify_password_reset(
    body: PasswordResetVerifyRequest,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Set a new password and sign out all sessions."""
    await auth_service.complete_password_reset(body.token, body.new_password)
    return MessageResponse(message="Password has been reset successfully")
