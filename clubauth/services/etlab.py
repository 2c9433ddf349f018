"""
EtLab Verifier - student portal identity verification.

Logs in to the college EtLab portal with the student's credentials and reads
back their profile. Every outcome is one of a closed set of result variants;
callers branch with ``match`` or hand the result to ``profile_or_raise``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx

from clubauth.config import Settings, get_settings
from clubauth.core.exceptions import (
    UnauthorizedError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/androidapp/app/login"
STUDENT_DETAILS_PATH = "/androidapp/app/getstudentdetails"


@dataclass(frozen=True)
class EtLabProfile:
    """Student details assembled from the login and details responses."""

    admno: str | None
    name: str | None
    email: str | None
    batch: str | None
    reg_no: str | None
    phone: str | None
    image: str | None


# =============================================================================
# Result variants
# =============================================================================


@dataclass(frozen=True)
class EtLabSuccess:
    profile: EtLabProfile


@dataclass(frozen=True)
class EtLabInvalidCredentials:
    pass


@dataclass(frozen=True)
class EtLabNetworkError:
    detail: str | None = None


@dataclass(frozen=True)
class EtLabApiError:
    status_code: int | None = None


@dataclass(frozen=True)
class EtLabErrorFetchingData:
    pass


@dataclass(frozen=True)
class EtLabTimeout:
    pass


EtLabResult = (
    EtLabSuccess
    | EtLabInvalidCredentials
    | EtLabNetworkError
    | EtLabApiError
    | EtLabErrorFetchingData
    | EtLabTimeout
)


def _first(*values: Any) -> Any:
    """First truthy value, or None."""
    for value in values:
        if value:
            return value
    return None


def _first_present(*values: Any) -> Any:
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def build_profile(login_data: dict[str, Any], details: dict[str, Any]) -> EtLabProfile:
    """
    Assemble the profile from the two portal responses.

    Each field takes the first usable source:
        admno: admission_no, then the login username
        name:  details name, then login profile_name
        batch: course, then academic_year, then end_year (None-coalescing)
        phone: phone_home, then phone_father, then phone_mother
    """
    end_year = login_data.get("end_year")
    return EtLabProfile(
        admno=_first(details.get("admission_no"), login_data.get("uname")),
        name=_first(details.get("name"), login_data.get("profile_name")),
        email=_first(details.get("email")),
        batch=_first_present(
            login_data.get("course"),
            login_data.get("academic_year"),
            str(end_year) if end_year is not None else None,
        ),
        reg_no=_first(details.get("register_no")),
        phone=_first(
            details.get("phone_home"),
            details.get("phone_father"),
            details.get("phone_mother"),
        ),
        image=_first(login_data.get("url")),
    )


class EtLabClient:
    """HTTP client for the EtLab portal API."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings. Uses get_settings() if not provided.
            http_client: Optional shared client (tests pass one with a mock transport)
        """
        self.settings = settings or get_settings()
        self._http_client = http_client
        self.base_url = self.settings.etlab_base_url.rstrip("/")
        self.timeout = httpx.Timeout(self.settings.etlab_timeout_seconds)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def verify(self, username: str, password: str) -> EtLabResult:
        """
        Log in to EtLab and fetch the student's details.

        Args:
            username: EtLab username
            password: EtLab password

        Returns:
            One of the EtLabResult variants. Never raises for upstream failures.
        """
        try:
            async with self._client() as client:
                login_response = await client.post(
                    f"{self.base_url}{LOGIN_PATH}",
                    json={"username": username, "password": password},
                    timeout=self.timeout,
                )
                if not login_response.is_success:
                    logger.warning(f"EtLab login returned HTTP {login_response.status_code}")
                    return EtLabNetworkError(f"HTTP {login_response.status_code}")

                login_data = login_response.json()
                if not login_data.get("login"):
                    return EtLabInvalidCredentials()

                details_response = await client.post(
                    f"{self.base_url}{STUDENT_DETAILS_PATH}",
                    headers={"Authorization": f"Bearer {login_data.get('access_token')}"},
                    timeout=self.timeout,
                )
                if not details_response.is_success:
                    logger.warning(
                        f"EtLab student details returned HTTP {details_response.status_code}"
                    )
                    return EtLabApiError(details_response.status_code)

                details = details_response.json()
                if not details.get("login"):
                    return EtLabErrorFetchingData()

        except httpx.TimeoutException:
            logger.warning(f"EtLab request timed out for {username}")
            return EtLabTimeout()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"EtLab request error: {e}")
            return EtLabNetworkError(str(e))

        return EtLabSuccess(build_profile(login_data, details))


def profile_or_raise(result: EtLabResult) -> EtLabProfile:
    """
    Unwrap a successful result or raise the matching HTTP-mapped error.

    Raises:
        UnauthorizedError: Invalid credentials (401)
        UpstreamTimeoutError: Portal timed out (504)
        UpstreamUnavailableError: Portal unreachable (503)
        UpstreamError: Portal answered with an error (502)
    """
    match result:
        case EtLabSuccess(profile=profile):
            return profile
        case EtLabInvalidCredentials():
            raise UnauthorizedError("Invalid EtLab credentials")
        case EtLabTimeout():
            raise UpstreamTimeoutError("EtLab API request timeout")
        case EtLabNetworkError():
            raise UpstreamUnavailableError("Network error connecting to EtLab")
        case EtLabApiError() | EtLabErrorFetchingData():
            raise UpstreamError("Error fetching data from EtLab")
