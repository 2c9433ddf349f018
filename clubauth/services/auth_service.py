"""
Auth Service - account and session business logic.

Password signup/login, refresh, password reset, profile updates, and the
account linking rules for EtLab and Google identities.

Sessions are a stateless access token plus a refresh token whose SHA-256
digest is stored per device. Revoking a refresh token does not revoke the
access tokens already minted from it; they lapse on their own short expiry.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
    TokenExpiredError,
    UnauthorizedError,
    ValidationError,
)
from clubauth.core.security import (
    TokenCodec,
    generate_token,
    get_password_hash,
    get_token_codec,
    hash_token,
    verify_password,
)
from clubauth.models.enums import ChallengeType
from clubauth.models.orm.password_reset_token import PasswordResetToken
from clubauth.models.orm.refresh_token import RefreshToken
from clubauth.models.orm.user import User
from clubauth.repositories.credential_store import CredentialStore
from clubauth.services.challenge_broker import ChallengeBroker, ChallengeNotFoundError
from clubauth.services.email_service import EmailService
from clubauth.services.etlab import EtLabClient, EtLabProfile, profile_or_raise
from clubauth.services.file_storage import (
    PhotoUploadError,
    ProfilePhotoStorage,
    is_absolute_url,
    is_data_uri,
    parse_image_data_uri,
)
from clubauth.services.google_oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)

LOGOUT_MESSAGE = "Logged out successfully. Please delete the token from client storage."
PASSWORD_RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata stored with each refresh token."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User


@dataclass
class GoogleLoginResult(TokenPair):
    is_new_user: bool


@dataclass
class AccessToken:
    access_token: str
    expires_in: int


@dataclass
class EtLabSignupResult:
    signup_token: str
    expires_in: int
    profile: EtLabProfile


class AuthService:
    """Service for password, token and linked-identity operations."""

    def __init__(
        self,
        store: CredentialStore,
        challenges: ChallengeBroker,
        *,
        settings: Settings | None = None,
        codec: TokenCodec | None = None,
        email: EmailService | None = None,
        photos: ProfilePhotoStorage | None = None,
        etlab: EtLabClient | None = None,
        google: GoogleOAuthClient | None = None,
    ):
        self.store = store
        self.challenges = challenges
        self.settings = settings or get_settings()
        self.codec = codec or get_token_codec()
        self.email = email or EmailService(self.settings)
        self.photos = photos or ProfilePhotoStorage(self.settings)
        self.etlab = etlab or EtLabClient(self.settings)
        self.google = google or GoogleOAuthClient(self.settings)

    # ========================================================================
    # Sessions
    # ========================================================================

    def _access_token_for(self, user: User) -> str:
        return self.codec.issue_access_token(
            user.id,
            user.email,
            user.phone,
            user.name,
            self.settings.access_token_ttl,
        )

    async def issue_session(self, user: User, client: ClientInfo | None = None) -> TokenPair:
        """
        Mint an access/refresh token pair and persist the refresh token digest.

        Args:
            user: User the tokens are issued to
            client: Optional request metadata stored alongside the session

        Returns:
            TokenPair with the raw tokens (never stored)
        """
        client = client or ClientInfo()
        access_token = self._access_token_for(user)
        refresh_token = self.codec.issue_refresh_token(user.id, self.settings.refresh_token_ttl)
        now = self.codec.now()

        await self.store.insert_refresh_token(
            RefreshToken(
                id=str(uuid4()),
                user_id=user.id,
                token_hash=hash_token(refresh_token),
                expires_at=now + self.settings.refresh_token_ttl,
                created_at=now,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_ttl,
            user=user,
        )

    async def refresh(self, refresh_token: str) -> AccessToken:
        """
        Mint a new access token from a stored refresh token.

        The refresh token itself is not rotated, so concurrent refreshes with
        the same token all succeed.

        Raises:
            UnauthorizedError: Invalid, unknown, expired or orphaned token
        """
        try:
            payload = self.codec.verify_refresh(refresh_token)
        except TokenExpiredError as e:
            # Expired sessions are cleaned up lazily on their next use
            stored = await self.store.find_refresh_token_by_hash(hash_token(refresh_token))
            if stored is not None:
                await self.store.delete_refresh_token(stored.id)
                await self.store.commit()
            raise UnauthorizedError("Refresh token expired") from e
        except InvalidTokenError as e:
            raise UnauthorizedError("Invalid or expired refresh token") from e

        user_id = payload["sub"]
        stored = await self.store.find_refresh_token_by_hash(hash_token(refresh_token), user_id)
        if stored is None:
            raise UnauthorizedError("Refresh token not found")

        now = self.codec.now()
        if stored.is_expired(now):
            await self.store.delete_refresh_token(stored.id)
            await self.store.commit()
            raise UnauthorizedError("Refresh token expired")

        await self.store.touch_refresh_token(stored.id, now)

        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        return AccessToken(
            access_token=self._access_token_for(user),
            expires_in=self.settings.access_token_ttl,
        )

    async def logout(self, user: User) -> str:
        """
        Confirm logout for an authenticated user.

        Access tokens are stateless, so the server keeps no state to change;
        the client discards its tokens.
        """
        logger.info(f"User logged out: {user.email}")
        return LOGOUT_MESSAGE

    async def get_current_user(self, user_id: str) -> User:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ========================================================================
    # Password signup / login
    # ========================================================================

    async def signup(
        self,
        email: str,
        name: str,
        password: str,
        phone: str | None = None,
        profile_photo: str | None = None,
        profile_photo_filename: str | None = None,
        client: ClientInfo | None = None,
    ) -> TokenPair:
        """
        Create a password account and sign it in.

        Raises:
            ConflictError: If the email is already registered
        """
        if await self.store.find_user_by_email(email) is not None:
            raise ConflictError("Email already registered")

        now = self.codec.now()
        user = await self.store.create_user(
            User(
                id=str(uuid4()),
                email=email,
                name=name,
                phone=phone or None,
                password_hash=get_password_hash(password),
                is_verified=False,
                created_at=now,
                updated_at=now,
            )
        )

        if profile_photo:
            try:
                photo_url = await self._store_photo(user.id, profile_photo, profile_photo_filename)
            except (PhotoUploadError, ValidationError) as e:
                logger.error(f"Signup photo upload failed for {user.id}: {e.message}")
                photo_url = None
            if photo_url:
                user = await self.store.update_user(user.id, {"profile_photo_url": photo_url}) or user

        await self._send_welcome_email(user)
        logger.info(f"User signed up: {user.email}")
        return await self.issue_session(user, client)

    async def login(self, email: str, password: str, client: ClientInfo | None = None) -> TokenPair:
        """
        Password login.

        Unknown emails and wrong passwords fail with the same error.

        Raises:
            UnauthorizedError: Invalid credentials
        """
        user = await self.store.find_user_by_email(email)
        valid, updated_hash = verify_password(password, user.password_hash if user else None)
        if user is None or not valid:
            raise UnauthorizedError("Invalid credentials")

        if updated_hash:
            user = await self.store.update_user(user.id, {"password_hash": updated_hash}) or user

        logger.info(f"User logged in: {user.email}")
        return await self.issue_session(user, client)

    # ========================================================================
    # Password reset
    # ========================================================================

    async def request_password_reset(self, email: str) -> str:
        """
        Email a reset link if the account exists.

        The response is identical whether or not the email is registered.
        """
        user = await self.store.find_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return PASSWORD_RESET_REQUESTED_MESSAGE

        now = self.codec.now()
        token = generate_token()
        await self.store.insert_password_reset_token(
            PasswordResetToken(
                token=token,
                user_id=user.id,
                expires_at=now + self.settings.password_reset_ttl,
                used=False,
                created_at=now,
            )
        )

        sent = await self.email.send_password_reset_email(
            user.email,
            user.name,
            token,
            expires_in_minutes=self.settings.password_reset_expire_minutes,
            is_first_time_setup=not user.password_hash,
        )
        if not sent:
            logger.warning(f"Password reset email not delivered for user {user.id}")
        return PASSWORD_RESET_REQUESTED_MESSAGE

    async def complete_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password from a reset token and sign out every session.

        Raises:
            ValidationError: Unknown, expired or already used token
        """
        record = await self.store.find_password_reset_token(token)
        if record is None:
            raise ValidationError("Invalid reset token")
        if record.expires_at <= self.codec.now():
            raise ValidationError("Reset token has expired")
        if record.used:
            raise ValidationError("Reset token has already been used")

        await self.store.update_user(record.user_id, {"password_hash": get_password_hash(new_password)})
        await self.store.mark_password_reset_token_used(token)
        revoked = await self.store.delete_all_refresh_tokens_for_user(record.user_id)
        logger.info(f"Password reset for user {record.user_id}, revoked {revoked} sessions")

    # ========================================================================
    # Profile
    # ========================================================================

    async def _store_photo(self, user_id: str, value: str, filename: str | None) -> str | None:
        """
        Resolve a submitted photo to the URL to store.

        Data URIs are uploaded, absolute URLs pass through, anything else is
        ignored (None).
        """
        if is_data_uri(value):
            image = parse_image_data_uri(value)
            if image is None:
                return None
            return await self.photos.upload(user_id, image, filename)
        if is_absolute_url(value):
            return value
        return None

    async def update_profile(self, user: User, updates: dict[str, Any]) -> User:
        """
        Apply a partial profile update.

        Args:
            user: Current user
            updates: Only the fields the client sent. Blank strings are
                ignored; ``profile_photo=None`` removes the photo.

        Returns:
            Updated user

        Raises:
            ConflictError: Email belongs to another account
            ValidationError: Nothing to update
            PhotoUploadError: Photo upload failed
        """
        fields: dict[str, Any] = {}

        name = (updates.get("name") or "").strip()
        if name:
            fields["name"] = name

        email = (updates.get("email") or "").strip()
        if email:
            owner = await self.store.find_user_by_email(email)
            if owner is not None and owner.id != user.id:
                raise ConflictError("Email already in use")
            fields["email"] = email

        phone = (updates.get("phone") or "").strip()
        if phone:
            fields["phone"] = phone

        old_photo_url = user.profile_photo_url
        uploaded = False
        if "profile_photo" in updates:
            photo = updates["profile_photo"]
            if photo is None:
                fields["profile_photo_url"] = None
            else:
                photo_url = await self._store_photo(
                    user.id, photo, updates.get("profile_photo_filename")
                )
                if photo_url is not None:
                    fields["profile_photo_url"] = photo_url
                    uploaded = is_data_uri(photo)

        if not fields:
            raise ValidationError("No valid fields to update")

        updated = await self.store.update_user(user.id, fields)
        if updated is None:
            raise NotFoundError("User not found")

        if uploaded and old_photo_url:
            await self.photos.delete_by_url(old_photo_url)

        return updated

    # ========================================================================
    # EtLab
    # ========================================================================

    async def link_etlab(self, user: User, username: str, password: str) -> tuple[User, EtLabProfile]:
        """
        Verify EtLab credentials and link the identity to ``user``.

        Raises:
            ValidationError: Account is already verified
            ConflictError: Another account owns this EtLab username
            UnauthorizedError / UpstreamError: Mapped EtLab failures
        """
        if user.is_verified:
            raise ValidationError("Account already verified with EtLab")

        owner = await self.store.find_user_by_etlab_username(username)
        if owner is not None and owner.id != user.id:
            raise ConflictError("This EtLab account is already linked to another user")

        profile = profile_or_raise(await self.etlab.verify(username, password))

        fields: dict[str, Any] = {"etlab_username": username, "is_verified": True}
        if not user.profile_photo_url and profile.image:
            fields["profile_photo_url"] = profile.image

        updated = await self.store.update_user(user.id, fields)
        if updated is None:
            raise NotFoundError("User not found")

        logger.info(f"EtLab account {username} linked to user {user.id}")
        return updated, profile

    async def etlab_signup(self, username: str, password: str) -> EtLabSignupResult:
        """
        First step of EtLab signup.

        Verifies the portal credentials, finds or creates the matching account
        and issues a single-use signup token bound to it.
        """
        profile = profile_or_raise(await self.etlab.verify(username, password))

        user = await self.store.find_user_by_etlab_username(username)
        if user is None and profile.email:
            user = await self.store.find_user_by_email(profile.email)

        if user is None:
            now = self.codec.now()
            user = await self.store.create_user(
                User(
                    id=str(uuid4()),
                    email=profile.email
                    or f"{username}@{self.settings.etlab_placeholder_email_domain}",
                    name=profile.name or username,
                    etlab_username=username,
                    profile_photo_url=profile.image,
                    is_verified=True,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info(f"Created user {user.id} from EtLab account {username}")

        signup_token = await self.challenges.issue(
            ChallengeType.SIGNUP, user.id, self.settings.signup_token_ttl
        )
        return EtLabSignupResult(
            signup_token=signup_token,
            expires_in=self.settings.signup_token_ttl,
            profile=profile,
        )

    async def complete_signup(
        self,
        signup_token: str,
        password: str,
        phone: str | None = None,
        profile_photo: str | None = None,
        profile_photo_filename: str | None = None,
        client: ClientInfo | None = None,
    ) -> TokenPair:
        """
        Second step of EtLab signup: set the password and sign in.

        Raises:
            ValidationError: Invalid/expired token, missing user, or the
                account already has a password
            PhotoUploadError: Photo upload failed
        """
        try:
            record = await self.challenges.consume(ChallengeType.SIGNUP, signup_token)
        except ChallengeNotFoundError as e:
            raise ValidationError("Invalid or expired signup token") from e

        user = await self.store.find_user_by_id(record.user_id) if record.user_id else None
        if user is None:
            raise ValidationError("User not found")
        if user.password_hash:
            raise ValidationError("Account already completed")

        fields: dict[str, Any] = {"password_hash": get_password_hash(password)}
        if phone:
            fields["phone"] = phone
        if profile_photo:
            photo_url = await self._store_photo(user.id, profile_photo, profile_photo_filename)
            if photo_url:
                fields["profile_photo_url"] = photo_url

        user = await self.store.update_user(user.id, fields) or user
        await self._send_welcome_email(user)
        logger.info(f"User completed signup: {user.email}")
        return await self.issue_session(user, client)

    # ========================================================================
    # Google
    # ========================================================================

    def google_authorization_url(self, signup: bool = False) -> str:
        return self.google.build_authorization_url(signup=signup)

    async def google_callback(self, code: str, client: ClientInfo | None = None) -> GoogleLoginResult:
        """
        Finish Google sign-in.

        Resolution order: user with this Google id, then user with this
        email (Google id linked onto it), else a new user.
        """
        google_token = await self.google.exchange_code(code)
        info = await self.google.get_user_info(google_token)

        is_new_user = False
        user = await self.store.find_user_by_google_id(info.google_id)
        if user is None:
            user = await self.store.find_user_by_email(info.email)
            if user is not None:
                fields: dict[str, Any] = {"google_id": info.google_id}
                if info.name:
                    fields["name"] = info.name
                if info.picture and not user.profile_photo_url:
                    fields["profile_photo_url"] = info.picture
                user = await self.store.update_user(user.id, fields) or user
                logger.info(f"Linked Google account to existing user {user.id}")
            else:
                now = self.codec.now()
                user = await self.store.create_user(
                    User(
                        id=str(uuid4()),
                        email=info.email,
                        name=info.name or info.email.split("@")[0],
                        google_id=info.google_id,
                        profile_photo_url=info.picture,
                        is_verified=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
                is_new_user = True
                await self._send_welcome_email(user)
                logger.info(f"Created user {user.id} from Google sign-in")

        pair = await self.issue_session(user, client)
        return GoogleLoginResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            user=pair.user,
            is_new_user=is_new_user,
        )

    async def disconnect_google(self, user: User) -> User:
        """
        Unlink Google from an account.

        Raises:
            ValidationError: No Google account linked
            ForbiddenError: No password set, Google is the only way in
        """
        if not user.google_id:
            raise ValidationError("No Google account linked")
        if not user.password_hash:
            raise ForbiddenError(
                "Cannot disconnect Google account. "
                "Please set a password first to maintain account access.",
                status_code=400,
            )

        updated = await self.store.update_user(user.id, {"google_id": None})
        if updated is None:
            raise NotFoundError("User not found")
        logger.info(f"Google account disconnected for user {user.id}")
        return updated

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _send_welcome_email(self, user: User) -> None:
        sent = await self.email.send_welcome_email(user.email, user.name)
        if not sent:
            logger.warning(f"Welcome email not delivered for user {user.id}")
