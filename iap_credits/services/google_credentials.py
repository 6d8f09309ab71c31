"""
Google service-account token acquisition for the Android publisher API.

A fresh access token is obtained for every verification; nothing is cached
between calls.
"""

import asyncio
from functools import partial
from typing import Protocol

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from structlog import get_logger

from iap_credits.exceptions import VerificationError
from iap_credits.models.api import Platform

logger = get_logger(__name__)

ANDROID_PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"


class AccessTokenProvider(Protocol):
    """Anything that can hand out a bearer token for the publisher API."""

    async def get_access_token(self) -> str:
        """
        Obtain a bearer token.

        Raises:
            VerificationError: If no token could be obtained
        """
        ...


class ServiceAccountTokenProvider:
    """Exchanges a service-account key for an androidpublisher-scoped token."""

    def __init__(
        self,
        service_account_json: str | dict[str, str],
        timeout_seconds: float = 5.0,
    ) -> None:
        """
        Initialize token provider.

        Args:
            service_account_json: Path to service account JSON or dict with credentials
            timeout_seconds: Upper bound on one token exchange
        """
        self.service_account_json = service_account_json
        self.timeout_seconds = timeout_seconds

    def _load_credentials(self) -> service_account.Credentials:
        if isinstance(self.service_account_json, str):
            return service_account.Credentials.from_service_account_file(  # type: ignore[no-untyped-call]
                self.service_account_json,
                scopes=[ANDROID_PUBLISHER_SCOPE],
            )
        return service_account.Credentials.from_service_account_info(  # type: ignore[no-untyped-call]
            self.service_account_json,
            scopes=[ANDROID_PUBLISHER_SCOPE],
        )

    def _fetch_token(self) -> str:
        """Blocking credential load and OAuth exchange."""
        credentials = self._load_credentials()
        # Token endpoint calls carry our timeout, not google-auth's 120s default
        request = partial(Request(), timeout=self.timeout_seconds)  # type: ignore[no-untyped-call]
        credentials.refresh(request)  # type: ignore[no-untyped-call]
        if not credentials.token:
            raise VerificationError(Platform.ANDROID.value, "Token endpoint returned no access token")
        return str(credentials.token)

    async def get_access_token(self) -> str:
        """
        Obtain a new access token.

        Raises:
            VerificationError: Missing or malformed key, revoked credential,
                network failure or timeout
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._fetch_token),
                timeout=self.timeout_seconds,
            )
        except VerificationError:
            raise
        except TimeoutError as exc:
            logger.error("google_access_token_timeout", timeout=self.timeout_seconds)
            raise VerificationError(
                Platform.ANDROID.value,
                f"Timed out obtaining access token after {self.timeout_seconds}s",
            ) from exc
        except (OSError, ValueError, google.auth.exceptions.GoogleAuthError) as exc:
            logger.error("google_access_token_failed", error=str(exc))
            raise VerificationError(
                Platform.ANDROID.value,
                f"Could not obtain access token: {exc}",
            ) from exc
