"""
EtLab (student portal) contract models.
"""

from pydantic import BaseModel, ConfigDict, Field

from clubauth.models.contracts.auth import UserProfile


class EtLabCredentialsRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class EtLabProfileResponse(BaseModel):
    """Student details as reported by the portal."""

    model_config = ConfigDict(from_attributes=True)

    admno: str | None = None
    name: str | None = None
    email: str | None = None
    batch: str | None = None
    reg_no: str | None = None
    phone: str | None = None
    image: str | None = None


class EtLabLinkResponse(BaseModel):
    user: UserProfile
    etlab_profile: EtLabProfileResponse


class EtLabSignupResponse(BaseModel):
    """Signup token (single use) and the verified profile."""

    signup_token: str
    expires_in: int
    etlab_profile: EtLabProfileResponse
