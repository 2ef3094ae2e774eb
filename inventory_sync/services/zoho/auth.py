"""
Zoho OAuth authentication using in-memory access token storage.
The refresh token always comes from settings; access tokens are never persisted.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from inventory_sync.core.config import Settings
from inventory_sync.core.exceptions import ZohoAuthError
from inventory_sync.core.utils import utc_now

logger = logging.getLogger(__name__)

EXPIRY_BUFFER = timedelta(minutes=5)


class ZohoAuthManager:
    """
    Hands out a valid Zoho access token, refreshing it when needed.

    Without OAuth client credentials, the static ZOHO_ACCESS_TOKEN from
    settings is used as-is.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self.token_url = f"{settings.ZOHO_ACCOUNTS_URL.rstrip('/')}/oauth/v2/token"
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    @property
    def can_refresh(self) -> bool:
        settings = self._settings
        return bool(settings.ZOHO_CLIENT_ID and settings.ZOHO_CLIENT_SECRET and settings.ZOHO_REFRESH_TOKEN)

    def _cached_token(self) -> Optional[str]:
        if self._access_token and self._expires_at:
            if utc_now() < self._expires_at - EXPIRY_BUFFER:
                return self._access_token
            logger.debug("Zoho access token expired or expiring soon")
        return None

    def save_access_token(self, access_token: str, expires_in: int) -> None:
        self._access_token = access_token
        self._expires_at = utc_now() + timedelta(seconds=expires_in)
        logger.info(f"Saved Zoho access token to memory (expires: {self._expires_at})")

    def clear_tokens(self) -> None:
        self._access_token = None
        self._expires_at = None

    async def get_access_token(self) -> str:
        """Get a valid access token, refreshing if necessary."""
        access_token = self._cached_token()
        if access_token:
            return access_token

        if not self.can_refresh:
            if self._settings.ZOHO_ACCESS_TOKEN:
                return self._settings.ZOHO_ACCESS_TOKEN
            raise ZohoAuthError("No Zoho credentials configured")

        logger.info("No valid Zoho access token in memory, refreshing...")
        return await self.refresh_access_token()

    async def refresh_access_token(self) -> str:
        settings = self._settings
        refresh_data = {
            "grant_type": "refresh_token",
            "refresh_token": settings.ZOHO_REFRESH_TOKEN,
            "client_id": settings.ZOHO_CLIENT_ID,
            "client_secret": settings.ZOHO_CLIENT_SECRET,
        }

        try:
            async with httpx.AsyncClient(timeout=settings.ZOHO_API_TIMEOUT) as client:
                response = await client.post(self.token_url, data=refresh_data)
        except httpx.RequestError as e:
            logger.error(f"Network error refreshing Zoho token: {str(e)}")
            raise ZohoAuthError(f"Network error refreshing access token: {str(e)}")

        token_data = {}
        try:
            token_data = response.json()
        except ValueError:
            pass

        # Zoho answers 200 with an "error" field for rejected refresh tokens
        if response.status_code != 200 or "access_token" not in token_data:
            error = token_data.get("error") or response.text
            logger.error(f"Zoho token refresh failed: {error}")
            raise ZohoAuthError(f"Failed to refresh access token: {error}", status_code=response.status_code)

        self.save_access_token(token_data["access_token"], int(token_data.get("expires_in", 3600)))
        logger.info("Successfully refreshed Zoho access token")
        return token_data["access_token"]
