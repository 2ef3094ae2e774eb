# inventory_sync.services.woocommerce.client

import json
import logging
from typing import Dict, List, Optional

import httpx

from inventory_sync.core.config import Settings
from inventory_sync.core.exceptions import WooCommerceAPIError

logger = logging.getLogger(__name__)


class WooCommerceClient:
    """
    Asynchronous client for the WooCommerce REST API (wc/v3), authenticated
    with a consumer key/secret pair over HTTPS basic auth.

    Only the product and variation endpoints needed for stock management are
    covered.
    """

    API_PATH = "wp-json/wc/v3"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.WOOCOMMERCE_URL:
            raise ValueError("WOOCOMMERCE_URL must be set in .env or as an environment variable.")

        self.BASE_URL = f"{settings.WOOCOMMERCE_URL.rstrip('/')}/{self.API_PATH}"
        self.auth = httpx.BasicAuth(settings.WOOCOMMERCE_CONSUMER_KEY, settings.WOOCOMMERCE_CONSUMER_SECRET)
        self.timeout = settings.WOOCOMMERCE_API_TIMEOUT
        self._transport = transport

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None
    ):
        """
        Make a request to the WooCommerce API.

        Returns the decoded JSON body, or None for 404 responses.

        Raises:
            WooCommerceAPIError: If the request fails.
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    auth=self.auth,
                    json=data,
                    params=params
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise WooCommerceAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise WooCommerceAPIError(f"Network error: {str(e)}")

        if response.status_code == 404:
            return None

        if response.status_code not in (200, 201):
            logger.error(f"WooCommerce API error {response.status_code}: {response.text[:500]}")
            raise WooCommerceAPIError(f"Request failed ({response.status_code}): {response.text[:500]}")

        try:
            return response.json()
        except ValueError as e:
            raise WooCommerceAPIError(f"Invalid JSON in WooCommerce response: {str(e)}")

    async def list_products(self, page: int = 1, per_page: int = 50, **filters) -> List[Dict]:
        params = {"page": page, "per_page": per_page, "orderby": "id", "order": "asc"}
        params.update(filters)
        return await self._make_request("GET", "products", params=params) or []

    async def get_product(self, product_id: int) -> Optional[Dict]:
        return await self._make_request("GET", f"products/{product_id}")

    async def update_product(self, product_id: int, data: Dict) -> Dict:
        return await self._make_request("PUT", f"products/{product_id}", data=data)

    async def update_variation(self, parent_id: int, variation_id: int, data: Dict) -> Dict:
        return await self._make_request("PUT", f"products/{parent_id}/variations/{variation_id}", data=data)
