import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from inventory_sync.core.config import Settings
from inventory_sync.core.exceptions import ZohoAPIError, ZohoAuthError
from .auth import ZohoAuthManager

logger = logging.getLogger(__name__)


class ZohoInventoryClient:
    """
    Asynchronous client for the Zoho Inventory REST API (v1).

    Every request carries the organization_id query parameter and an
    ``Authorization: Zoho-oauthtoken`` header. Rate limiting (429) and
    gateway/server errors (500, 502, 503, 504) are retried with exponential
    backoff, as are network errors and timeouts, up to ZOHO_MAX_RETRIES extra
    attempts. Other error responses fail immediately with ZohoAPIError.

    Documentation: https://www.zoho.com/inventory/api/v1/
    """

    RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        settings: Settings,
        auth: Optional[ZohoAuthManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self._settings = settings
        self.auth = auth or ZohoAuthManager(settings)
        self.BASE_URL = f"{settings.ZOHO_API_BASE_URL.rstrip('/')}/inventory/v1"
        self.organization_id = settings.ZOHO_ORGANIZATION_ID
        self.timeout = settings.ZOHO_API_TIMEOUT
        self.max_retries = settings.ZOHO_MAX_RETRIES
        self.retry_delay = settings.ZOHO_RETRY_DELAY
        self._transport = transport
        self._sleep = sleep

    def _get_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Zoho-oauthtoken {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def backoff_delay(self, attempt: int, status_code: Optional[int] = None) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if status_code == 429:
            return min(60, (2 ** attempt) * 5)
        if status_code is None:
            return self.retry_delay * attempt
        return min(30, (2 ** (attempt - 1)) * self.retry_delay)

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        try:
            error_data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:200]}"

        if isinstance(error_data, dict):
            if error_data.get("message"):
                return str(error_data["message"])
            for key in ("error", "details"):
                nested = error_data.get(key)
                if isinstance(nested, dict) and nested.get("message"):
                    return str(nested["message"])
        return f"HTTP {response.status_code}"

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> Dict:
        """
        Make a request to the Zoho Inventory API.

        Raises:
            ZohoAuthError: If no access token can be obtained.
            ZohoAPIError: If the request fails after all retries.
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        query = {"organization_id": self.organization_id}
        query.update(params or {})

        max_attempts = self.max_retries + 1
        token_refreshed = False
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            headers = self._get_headers(await self.auth.get_access_token())

            logger.debug(f"Making {method} request to {url} (attempt {attempt}/{max_attempts})")
            if data:
                logger.debug(f"Data: {json.dumps(data)[:500]}")

            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=headers,
                        json=data,
                        params=query
                    )
            except httpx.RequestError as e:
                if attempt >= max_attempts:
                    logger.error(f"Network error calling Zoho {endpoint}: {str(e)}")
                    raise ZohoAPIError(f"Network error: {str(e)}")
                delay = self.backoff_delay(attempt)
                logger.warning(f"Network error calling Zoho {endpoint}: {str(e)}; retrying in {delay}s")
                await self._sleep(delay)
                continue

            if 200 <= response.status_code < 300:
                return self._parse_response(response)

            message = self._extract_error_message(response)

            # Stale cached token: refresh once without spending an attempt
            if response.status_code == 401 and self.auth.can_refresh and not token_refreshed:
                logger.info("Zoho rejected the access token; refreshing")
                self.auth.clear_tokens()
                token_refreshed = True
                attempt -= 1
                continue

            if response.status_code == 401:
                raise ZohoAuthError(f"Unauthorized: {message}", status_code=401)

            if response.status_code not in self.RETRYABLE_STATUS_CODES or attempt >= max_attempts:
                logger.error(f"Zoho API error {response.status_code} on {method} {endpoint}: {message}")
                raise ZohoAPIError(message, status_code=response.status_code)

            delay = self.backoff_delay(attempt, response.status_code)
            logger.warning(f"Zoho API returned {response.status_code} for {endpoint}; retrying in {delay}s")
            await self._sleep(delay)

        raise ZohoAPIError(f"Maximum retries reached for {method} {endpoint}")

    @staticmethod
    def _parse_response(response: httpx.Response) -> Dict:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise ZohoAPIError(f"Invalid JSON in Zoho response: {str(e)}", status_code=response.status_code)

        # Zoho reports application errors in a non-zero "code" field
        if isinstance(payload, dict) and payload.get("code") not in (None, 0):
            raise ZohoAPIError(
                str(payload.get("message") or f"Zoho error code {payload.get('code')}"),
                status_code=response.status_code
            )
        return payload

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Dict:
        return await self._make_request("GET", endpoint, params=params)

    async def put(self, endpoint: str, data: Dict) -> Dict:
        return await self._make_request("PUT", endpoint, data=data)

    async def get_item_stock(self, item_id: str) -> Dict:
        return await self.get(f"items/{item_id}/stock")

    async def update_item_stock(self, item_id: str, quantity: int) -> Dict:
        return await self.put(f"items/{item_id}/stock", {"quantity": quantity})
