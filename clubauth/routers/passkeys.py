"""
Passkeys Router

WebAuthn passkey registration, passwordless login and management.
"""

from typing import Any

from fastapi import APIRouter

from clubauth.core.auth import Client, CurrentUser, PasskeyServiceDep
from clubauth.models.contracts.auth import AuthTokens
from clubauth.models.contracts.common import MessageResponse, SuccessResponse
from clubauth.models.contracts.passkeys import (
    PasskeyListResponse,
    PasskeyLoginStartRequest,
    PasskeyLoginVerifyRequest,
    PasskeyRegistrationVerifyRequest,
    PasskeyRegistrationVerifyResponse,
    PasskeyResponse,
)
from clubauth.routers.auth import to_auth_tokens

router = APIRouter(prefix="/auth", tags=["passkeys"])


# =============================================================================
# Registration (authenticated)
# =============================================================================


@router.post("/passkey/register/start", response_model=SuccessResponse[dict[str, Any]])
async def passkey_register_start(
    current_user: CurrentUser,
    passkey_service: PasskeyServiceDep,
) -> SuccessResponse[dict[str, Any]]:
    """Registration options for navigator.credentials.create()."""
    options = await passkey_service.registration_start(current_user)
    return SuccessResponse(data=options)


@router.post(
    "/passkey/register/verify",
    response_model=SuccessResponse[PasskeyRegistrationVerifyResponse],
)
async def passkey_register_verify(
    body: PasskeyRegistrationVerifyRequest,
    current_user: CurrentUser,
    passkey_service: PasskeyServiceDep,
) -> SuccessResponse[PasskeyRegistrationVerifyResponse]:
    credential_id = await passkey_service.registration_verify(
        current_user, body.credential, body.device_name
    )
    return SuccessResponse(data=PasskeyRegistrationVerifyResponse(credential_id=credential_id))


# =============================================================================
# Authentication (public)
# =============================================================================


@router.post("/passkey/login/start", response_model=SuccessResponse[dict[str, Any]])
async def passkey_login_start(
    body: PasskeyLoginStartRequest,
    passkey_service: PasskeyServiceDep,
) -> SuccessResponse[dict[str, Any]]:
    """Authentication options limited to the user's registered passkeys."""
    options = await passkey_service.login_start(body.email)
    return SuccessResponse(data=options)


@router.post("/passkey/login/verify", response_model=SuccessResponse[AuthTokens])
async def passkey_login_verify(
    body: PasskeyLoginVerifyRequest,
    passkey_service: PasskeyServiceDep,
    client: Client,
) -> SuccessResponse[AuthTokens]:
    pair = await passkey_service.login_verify(body.email, body.credential, client)
    return SuccessResponse(data=to_auth_tokens(pair))


# =============================================================================
# Management (authenticated)
# =============================================================================


@router.get("/passkeys", response_model=SuccessResponse[PasskeyListResponse])
async def list_passkeys(
    current_user: CurrentUser,
    passkey_service: PasskeyServiceDep,
) -> SuccessResponse[PasskeyListResponse]:
    """List the current user's passkeys, newest first."""
    passkeys = await passkey_service.list_passkeys(current_user)
    return SuccessResponse(
        data=PasskeyListResponse(
            passkeys=[PasskeyResponse.model_validate(p) for p in passkeys],
            count=len(passkeys),
        )
    )


@router.delete("/passkeys/{passkey_id}", response_model=MessageResponse)
async def delete_passkey(
    passkey_id: str,
    current_user: CurrentUser,
    passkey_service: PasskeyServiceDep,
) -> MessageResponse:
    await passkey_service.delete_passkey(current_user, passkey_id)
    return MessageResponse(message="Passkey deleted successfully")
