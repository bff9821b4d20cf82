"""
Access-token cache for the Zalo OpenAPI.

Single-slot cache: one bearer token plus its absolute expiry. Refreshed
through the OAuth endpoint when stale; the seed token from configuration
is used as a best-effort fallback when refresh is impossible.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from ..config import is_configured
from ..errors import CredentialError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
SAFETY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class CachedToken:
    """Token snapshot. Replaced wholesale on refresh."""
    token: Optional[str]
    expires_at: Optional[float] = None


class AccessTokenCache:
    """
    Holds the current access token and refreshes it on demand.

    USAGE:
        cache = AccessTokenCache(http_client, oauth_url)
        cache.initialize(settings.zalo_access_token)
        token = await cache.get_valid_token(refresh_token, fallback_token)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        oauth_url: str,
        safety_margin: float = SAFETY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._http = http_client
        self._oauth_url = oauth_url
        self._safety_margin = safety_margin
        self._clock = clock
        self._state = CachedToken(token=None)
        # Serializes refreshes; reads never wait on it
        self._refresh_lock = asyncio.Lock()

    @property
    def state(self) -> CachedToken:
        return self._state

    def initialize(self, seed_token: Optional[str]) -> None:
        """Seed the cache at startup. Expiry stays unknown until the first refresh."""
        self._state = CachedToken(token=seed_token or None, expires_at=None)

    def _is_fresh(self, state: CachedToken) -> bool:
        return (
            state.token is not None
            and state.expires_at is not None
            and self._clock() < state.expires_at - self._safety_margin
        )

    async def get_valid_token(
        self,
        refresh_credential: Optional[str],
        fallback_credential: Optional[str] = None,
    ) -> str:
        """
        Return a usable access token.

        Order:
        1. Cached token still inside its expiry minus the safety margin.
        2. Seed token with unknown expiry: try one refresh, fall back to the seed.
        3. Otherwise refresh; on failure use fallback_credential if configured.

        Raises:
            CredentialError / NetworkError when refresh fails and no fallback exists.
        """
        state = self._state
        if self._is_fresh(state):
            return state.token

        try:
            if state.token is not None and state.expires_at is None:
                try:
                    return await self._refresh(refresh_credential)
                except (CredentialError, NetworkError) as e:
                    logger.warning(f"Could not refresh token, using seed access token: {e}")
                    return state.token

            return await self._refresh(refresh_credential)

        except (CredentialError, NetworkError) as e:
            logger.error(f"Error getting access token: {e}")
            if is_configured(fallback_credential):
                logger.warning("Using configured access token as fallback")
                return fallback_credential
            raise

    async def _refresh(self, refresh_credential: Optional[str]) -> str:
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            if self._is_fresh(self._state):
                return self._state.token
            return await self.refresh(refresh_credential)

    async def refresh(self, refresh_credential: Optional[str]) -> str:
        """
        Exchange the refresh credential for a new access token.

        Raises:
            CredentialError: refresh credential missing or placeholder.
            NetworkError: exchange call failed or returned no token.
        """
        if not is_configured(refresh_credential):
            raise CredentialError("ZALO_REFRESH_TOKEN is required. Please configure it in .env file")

        logger.info("Refreshing access token using refresh token...")

        try:
            response = await self._http.post(
                self._oauth_url,
                params={
                    "refresh_token": refresh_credential,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"Token refresh failed: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Token refresh returned invalid JSON: {e}") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise NetworkError("Failed to refresh access token from Zalo")

        expires_in = _parse_expires_in(data.get("expires_in"))
        self._state = CachedToken(
            token=access_token,
            expires_at=self._clock() + expires_in,
        )

        logger.info(f"Access token refreshed, valid for {expires_in}s")
        return access_token


def _parse_expires_in(value) -> int:
    """Zalo sends expires_in as a string of seconds; default one hour."""
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_LIFETIME_SECONDS
    return seconds if seconds > 0 else DEFAULT_TOKEN_LIFETIME_SECONDS
