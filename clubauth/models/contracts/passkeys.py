"""
Passkey/WebAuthn contract models.

API request and response models for passkey (WebAuthn) operations.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# =============================================================================
# Registration
# =============================================================================


class PasskeyCredentialPayload(BaseModel):
    """
    Credential JSON produced by ``navigator.credentials.create()`` / ``get()``.

    ``response`` must carry ``clientDataJSON`` (base64url). Registration also
    sends ``attestationObject``.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    raw_id: str | None = Field(default=None, alias="rawId")
    type: str = "public-key"
    response: dict[str, Any]
    transports: list[str] | None = None


class PasskeyRegistrationVerifyRequest(BaseModel):
    """Request to verify passkey registration."""

    credential: PasskeyCredentialPayload
    device_name: str | None = Field(
        default=None,
        description="Optional friendly name for the passkey",
        max_length=255,
    )


class PasskeyRegistrationVerifyResponse(BaseModel):
    """Response after successful passkey registration."""

    verified: bool = True
    credential_id: str


# =============================================================================
# Authentication
# =============================================================================


class PasskeyLoginStartRequest(BaseModel):
    email: EmailStr


class PasskeyLoginVerifyRequest(BaseModel):
    email: EmailStr
    credential: PasskeyCredentialPayload


# =============================================================================
# Management
# =============================================================================


class PasskeyResponse(BaseModel):
    """Passkey information for listing (no secrets)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    credential_id: str
    device_name: str | None
    created_at: int
    last_used_at: int | None


class PasskeyListResponse(BaseModel):
    passkeys: list[PasskeyResponse]
    count: int
