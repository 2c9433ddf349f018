"""
Passkey Service - WebAuthn/Passkey registration and login.

Options are generated with py_webauthn so browsers receive standard
JSON. The ceremony is tied to its challenge through the client data the
authenticator echoes back.

Trust model: attestation and assertion signatures are NOT verified. The
attestation object is stored as an opaque value and the credential id
supplied by the client is trusted. This is not production-grade WebAuthn.
"""

import json
import logging
from typing import Any
from uuid import uuid4

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url, parse_client_data_json
from webauthn.helpers.cose import COSEAlgorithmIdentifier
from webauthn.helpers.exceptions import InvalidJSONStructure
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorTransport,
    ClientDataType,
    PublicKeyCredentialDescriptor,
)

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import ConflictError, NotFoundError, ValidationError
from clubauth.models.contracts.passkeys import PasskeyCredentialPayload
from clubauth.models.enums import ChallengeType
from clubauth.models.orm.passkey import PasskeyCredential
from clubauth.models.orm.user import User
from clubauth.repositories.credential_store import CredentialStore
from clubauth.services.auth_service import AuthService, ClientInfo, TokenPair
from clubauth.services.challenge_broker import ChallengeBroker, ChallengeNotFoundError

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = [
    COSEAlgorithmIdentifier.ECDSA_SHA_256,  # -7
    COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_256,  # -257
]


def _descriptor(credential: PasskeyCredential) -> PublicKeyCredentialDescriptor | None:
    try:
        credential_id = base64url_to_bytes(credential.credential_id)
    except ValueError:
        logger.warning(f"Skipping passkey {credential.id}: credential id is not base64url")
        return None

    transports = []
    for transport in credential.transports or []:
        try:
            transports.append(AuthenticatorTransport(transport))
        except ValueError:
            continue
    return PublicKeyCredentialDescriptor(id=credential_id, transports=transports or None)


class PasskeyService:
    """Service for WebAuthn passkey operations."""

    def __init__(
        self,
        store: CredentialStore,
        challenges: ChallengeBroker,
        sessions: AuthService,
        settings: Settings | None = None,
    ):
        self.store = store
        self.challenges = challenges
        self.sessions = sessions
        self.settings = settings or get_settings()

    def _descriptors(self, credentials: list[PasskeyCredential]) -> list[PublicKeyCredentialDescriptor]:
        return [d for d in (_descriptor(c) for c in credentials) if d is not None]

    @staticmethod
    def _echoed_challenge(credential: PasskeyCredentialPayload, expected: ClientDataType) -> str:
        """
        Read the challenge the authenticator signed over.

        Raises:
            ValidationError: Missing or malformed client data, or client data
                from the other ceremony
        """
        raw = credential.response.get("clientDataJSON")
        if not isinstance(raw, str) or not raw:
            raise ValidationError("Invalid credential")
        try:
            client_data = parse_client_data_json(base64url_to_bytes(raw))
        except (InvalidJSONStructure, ValueError) as e:
            raise ValidationError("Invalid credential") from e

        if client_data.type != expected:
            raise ValidationError("Invalid credential")
        return bytes_to_base64url(client_data.challenge)

    # ========================================================================
    # Registration (for authenticated users adding passkeys)
    # ========================================================================

    async def registration_start(self, user: User) -> dict[str, Any]:
        """
        Generate WebAuthn registration options.

        Existing passkeys are listed in ``excludeCredentials`` so the same
        authenticator is not registered twice.

        Returns:
            Registration options JSON for navigator.credentials.create()
        """
        existing = await self.store.list_passkey_credentials_for_user(user.id)
        challenge = await self.challenges.issue(
            ChallengeType.PASSKEY_REGISTER,
            user.id,
            self.settings.passkey_challenge_expire_seconds,
        )

        options = generate_registration_options(
            rp_id=self.settings.webauthn_rp_id,
            rp_name=self.settings.webauthn_rp_name,
            user_id=user.id.encode(),
            user_name=user.email,
            user_display_name=user.name,
            challenge=base64url_to_bytes(challenge),
            timeout=self.settings.webauthn_timeout_ms,
            attestation=AttestationConveyancePreference.NONE,
            exclude_credentials=self._descriptors(existing),
            supported_pub_key_algs=SUPPORTED_ALGORITHMS,
        )
        return json.loads(options_to_json(options))

    async def registration_verify(
        self,
        user: User,
        credential: PasskeyCredentialPayload,
        device_name: str | None = None,
    ) -> str:
        """
        Store a new passkey for ``user``.

        Returns:
            The stored credential id

        Raises:
            ValidationError: Invalid or expired challenge, or a challenge
                issued to someone else
            ConflictError: Credential id already registered
        """
        challenge = self._echoed_challenge(credential, ClientDataType.WEBAUTHN_CREATE)
        try:
            record = await self.challenges.consume(ChallengeType.PASSKEY_REGISTER, challenge)
        except ChallengeNotFoundError as e:
            raise ValidationError("Invalid or expired challenge") from e
        if record.user_id != user.id:
            raise ValidationError("Invalid or expired challenge")

        if await self.store.find_passkey_credential_by_id(credential.id) is not None:
            raise ConflictError("This passkey is already registered")

        transports = credential.transports or credential.response.get("transports") or []
        await self.store.insert_passkey_credential(
            PasskeyCredential(
                id=str(uuid4()),
                user_id=user.id,
                credential_id=credential.id,
                public_key=credential.response.get("attestationObject"),
                counter=0,
                transports=[str(t) for t in transports],
                device_name=device_name,
                created_at=self.sessions.codec.now(),
            )
        )
        logger.info(f"Passkey registered for user {user.id}")
        return credential.id

    # ========================================================================
    # Authentication
    # ========================================================================

    async def login_start(self, email: str) -> dict[str, Any]:
        """
        Generate WebAuthn authentication options scoped to one user.

        Raises:
            ValidationError: Unknown email, or the user has no passkeys
        """
        user = await self.store.find_user_by_email(email)
        if user is None:
            raise ValidationError("User not found")

        credentials = await self.store.list_passkey_credentials_for_user(user.id)
        if not credentials:
            raise ValidationError("No passkeys registered for this user")

        challenge = await self.challenges.issue(
            ChallengeType.PASSKEY_LOGIN,
            user.id,
            self.settings.passkey_challenge_expire_seconds,
        )
        options = generate_authentication_options(
            rp_id=self.settings.webauthn_rp_id,
            challenge=base64url_to_bytes(challenge),
            timeout=self.settings.webauthn_timeout_ms,
            allow_credentials=self._descriptors(credentials),
        )
        return json.loads(options_to_json(options))

    async def login_verify(
        self,
        email: str,
        credential: PasskeyCredentialPayload,
        client: ClientInfo | None = None,
    ) -> TokenPair:
        """
        Complete a passkey login and issue a session.

        Raises:
            ValidationError: Invalid or expired challenge, unknown credential,
                or the credential belongs to a different email
        """
        challenge = self._echoed_challenge(credential, ClientDataType.WEBAUTHN_GET)
        try:
            record = await self.challenges.consume(ChallengeType.PASSKEY_LOGIN, challenge)
        except ChallengeNotFoundError as e:
            raise ValidationError("Invalid or expired challenge") from e

        stored = await self.store.find_passkey_credential_by_id(credential.id, record.user_id)
        if stored is None:
            raise ValidationError("Invalid credential")

        user = await self.store.find_user_by_id(stored.user_id)
        if user is None or user.email.lower() != email.lower():
            raise ValidationError("Email mismatch")

        await self.store.touch_passkey_credential(stored.id, self.sessions.codec.now())
        logger.info(f"Passkey login: {user.email}")
        return await self.sessions.issue_session(user, client)

    # ========================================================================
    # Management
    # ========================================================================

    async def list_passkeys(self, user: User) -> list[PasskeyCredential]:
        return await self.store.list_passkey_credentials_for_user(user.id)

    async def delete_passkey(self, user: User, passkey_id: str) -> None:
        """
        Delete one of the user's passkeys.

        Raises:
            NotFoundError: No such passkey owned by the user
        """
        if not await self.store.delete_passkey_credential(passkey_id, user.id):
            raise NotFoundError("Passkey not found")
        logger.info(f"Passkey {passkey_id} deleted for user {user.id}")
