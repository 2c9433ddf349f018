"""
EtLab Router

Student portal verification: link EtLab to a signed-in account, or start a
signup from EtLab credentials.
"""

from fastapi import APIRouter

from clubauth.core.auth import AuthServiceDep, CurrentUser
from clubauth.models.contracts.auth import UserProfile
from clubauth.models.contracts.common import SuccessResponse
from clubauth.models.contracts.etlab import (
    EtLabCredentialsRequest,
    EtLabLinkResponse,
    EtLabProfileResponse,
    EtLabSignupResponse,
)

router = APIRouter(prefix="/auth/etlab", tags=["etlab"])


@router.post("/verify", response_model=SuccessResponse[EtLabLinkResponse])
async def link_etlab(
    body: EtLabCredentialsRequest,
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> SuccessResponse[EtLabLinkResponse]:
    """
    Link an EtLab account to the current user and mark them verified.

    Errors map to 401 (bad credentials), 502 (portal error), 503 (portal
    unreachable) and 504 (portal timeout).
    """
    user, profile = await auth_service.link_etlab(current_user, body.username, body.password)
    return SuccessResponse(
        data=EtLabLinkResponse(
            user=UserProfile.from_user(user),
            etlab_profile=EtLabProfileResponse.model_validate(profile),
        )
    )


@router.post("/signup", response_model=SuccessResponse[EtLabSignupResponse])
async def etlab_signup(
    body: EtLabCredentialsRequest,
    auth_service: AuthServiceDep,
) -> SuccessResponse[EtLabSignupResponse]:
    """Verify EtLab credentials and return a single-use signup token."""
    result = await auth_service.etlab_signup(body.username, body.password)
    return SuccessResponse(
        data=EtLabSignupResponse(
            signup_token=result.signup_token,
            expires_in=result.expires_in,
            etlab_profile=EtLabProfileResponse.model_validate(result.profile),
        )
    )
