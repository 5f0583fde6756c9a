"""Google OAuth with PKCE using Authlib.

This module provides the authorization-code flow for Google Calendar with:
- PKCE (S256) consent URLs that always yield a refresh token
- One-time code exchange into the encrypted token store
- Per-user credential resolution for the Calendar API client

Access-token renewal is left to google-auth: the credentials handed to the
API client carry only the refresh token and client identity.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2 import OAuth2Error
from google.oauth2.credentials import Credentials as GoogleCredentials
from googleapiclient.discovery import build

from calendar_scheduler.config import Settings
from calendar_scheduler.exceptions import AuthExchangeError, NotAuthorizedError
from calendar_scheduler.google.pkce import challenge_from_verifier, generate_verifier
from calendar_scheduler.stores.tokens import TokenStore

logger = logging.getLogger(__name__)


# Least privilege: read calendars, manage events
SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]


@dataclass
class AuthorizationState:
    """A pending authorization attempt.

    ``code_verifier`` must stay with the caller until the callback arrives;
    it is never persisted.
    """

    authorization_url: str
    code_verifier: str
    state: str


def _build_calendar_service(credentials: GoogleCredentials) -> Any:
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


class GoogleOAuth:
    """Authorization and credential resolution for Google Calendar.

    Example:
        >>> oauth = GoogleOAuth(settings, token_store)
        >>> pending = oauth.build_authorization_url()
        >>> print(f"Visit: {pending.authorization_url}")
        >>> # ... callback delivers ?code=...&state=...
        >>> await oauth.handle_callback("demo-user", code, state)
        >>> service = oauth.build_service("demo-user")
    """

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        settings: Settings,
        token_store: TokenStore,
        service_factory: Callable[[GoogleCredentials], Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Google OAuth.

        Args:
            settings: Process configuration (client identity, redirect URI, override token).
            token_store: Encrypted store for refresh tokens.
            service_factory: Builds a Calendar API service from credentials.
                Defaults to googleapiclient discovery.
            transport: httpx transport for token endpoint calls (tests use a mock).
        """
        self.settings = settings
        self.token_store = token_store
        self._service_factory = service_factory or _build_calendar_service
        self._transport = transport
        self._pending: dict[str, AuthorizationState] = {}

    def _session(self) -> AsyncOAuth2Client:
        kwargs: dict[str, Any] = {}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return AsyncOAuth2Client(
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            scope=" ".join(SCOPES),
            redirect_uri=self.settings.redirect_uri,
            token_endpoint_auth_method=(
                "client_secret_post" if self.settings.client_secret else "none"
            ),
            **kwargs,
        )

    # =========================================================================
    # Authorization
    # =========================================================================

    def build_authorization_url(self, state: str | None = None) -> AuthorizationState:
        """Start an authorization attempt.

        Args:
            state: Anti-forgery nonce the callback must echo. Generated if omitted.

        Returns:
            The consent URL together with its verifier and state.
        """
        state = state or secrets.token_hex(16)
        code_verifier = generate_verifier()

        session = self._session()
        authorization_url, _ = session.create_authorization_url(
            self.AUTHORIZE_URL,
            state=state,
            code_challenge=challenge_from_verifier(code_verifier),
            code_challenge_method="S256",
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )

        pending = AuthorizationState(
            authorization_url=authorization_url,
            code_verifier=code_verifier,
            state=state,
        )
        self._pending[state] = pending
        return pending

    async def exchange_code(self, user_id: str, code: str, code_verifier: str) -> None:
        """Exchange an authorization code and store the refresh token.

        Raises:
            AuthExchangeError: If the endpoint rejects the code (invalid or
                already used) or returns no refresh token.
        """
        async with self._session() as session:
            try:
                token = await session.fetch_token(
                    self.TOKEN_URL,
                    grant_type="authorization_code",
                    code=code,
                    code_verifier=code_verifier,
                )
            except (OAuthError, OAuth2Error) as e:
                raise AuthExchangeError(f"Authorization code exchange failed: {e}") from e

        refresh_token = token.get("refresh_token")
        if not refresh_token:
            raise AuthExchangeError(
                "No refresh_token received. Authorize again with "
                "prompt=consent and access_type=offline."
            )

        self.token_store.save(user_id, refresh_token)
        logger.info(f"Authorized user {user_id} with scopes: {token.get('scope', '')}")

    async def handle_callback(self, user_id: str, code: str | None, state: str | None) -> None:
        """Complete a pending authorization from the redirect parameters.

        The pending attempt is discarded whether or not the exchange succeeds.

        Raises:
            AuthExchangeError: If the state is unknown or the code is missing.
        """
        pending = self._pending.pop(state, None) if state else None
        if pending is None:
            raise AuthExchangeError("OAuth state mismatch; start authorization again")
        if not code:
            raise AuthExchangeError("OAuth callback is missing the authorization code")

        await self.exchange_code(user_id, code, pending.code_verifier)

    # =========================================================================
    # Credentials
    # =========================================================================

    def get_refresh_token(self, user_id: str) -> str | None:
        return self.settings.refresh_token_override or self.token_store.get(user_id)

    def is_authorized(self, user_id: str) -> bool:
        return self.get_refresh_token(user_id) is not None

    def resolve_credentials(self, user_id: str) -> GoogleCredentials:
        """Get Google credentials for a user.

        The configured override token wins over the stored one.

        Raises:
            NotAuthorizedError: If neither exists.
        """
        refresh_token = self.get_refresh_token(user_id)
        if not refresh_token:
            raise NotAuthorizedError(user_id)

        return GoogleCredentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.TOKEN_URL,
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            scopes=SCOPES,
        )

    def build_service(self, user_id: str) -> Any:
        """Build a Calendar API service bound to the user's credentials."""
        return self._service_factory(self.resolve_credentials(user_id))

    async def revoke(self, user_id: str) -> bool:
        """Revoke the user's stored refresh token and forget it locally.

        Returns:
            True if a stored token existed.
        """
        refresh_token = self.token_store.get(user_id)
        if refresh_token:
            async with self._session() as session:
                try:
                    response = await session.request(
                        "POST",
                        self.REVOKE_URL,
                        params={"token": refresh_token},
                        withhold_token=True,
                    )
                    if response.status_code != 200:
                        logger.warning(f"Token revocation returned {response.status_code}")
                except httpx.HTTPError as e:
                    logger.warning(f"Failed to revoke token remotely: {e}")

        return self.token_store.delete(user_id)
