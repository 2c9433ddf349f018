"""
Authentication contracts (API request/response schemas).
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from clubauth.models.orm.user import User

# bcrypt only looks at the first 72 bytes
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72


# =============================================================================
# Users
# =============================================================================


class PublicUser(BaseModel):
    """User fields returned alongside freshly issued tokens."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    phone: str | None = None
    profile_photo_url: str | None = None
    is_verified: bool = False


class UserProfile(PublicUser):
    """Full profile of the signed-in user."""

    google_id: str | None = None
    etlab_username: str | None = None
    created_at: int

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls.model_validate(user)


# =============================================================================
# Password flows
# =============================================================================


class SignupRequest(BaseModel):
    """User registration request model."""

    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    phone: str | None = Field(default=None, max_length=32)
    profile_photo: str | None = Field(
        default=None, description="data:image/...;base64 URI or an absolute http(s) URL"
    )
    profile_photo_filename: str | None = None


class LoginRequest(BaseModel):
    """Login request model."""

    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    """Token refresh request model."""

    refresh_token: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetVerifyRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


class UpdateProfileRequest(BaseModel):
    """
    Partial profile update.

    Only fields present in the request body are considered. ``profile_photo``
    sent as ``null`` removes the current photo.
    """

    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    profile_photo: str | None = None
    profile_photo_filename: str | None = None


class SignupCompleteRequest(BaseModel):
    """Second step of EtLab signup: set a password for the verified account."""

    signup_token: str = Field(min_length=1)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    phone: str | None = Field(default=None, max_length=32)
    profile_photo: str | None = None
    profile_photo_filename: str | None = None


# =============================================================================
# Token responses
# =============================================================================


class AuthTokens(BaseModel):
    """Token pair with the user it was issued to."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: PublicUser


class GoogleAuthTokens(AuthTokens):
    is_new_user: bool


class AccessTokenResponse(BaseModel):
    """New access token minted from a refresh token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class GoogleAuthUrlResponse(BaseModel):
    auth_url: str
