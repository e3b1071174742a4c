"""
Shopify Admin REST API client for full-collection reads.

This client handles:
- Cursor pagination over customers, orders and products
- Error mapping from HTTP status codes to typed exceptions
- A lightweight connection test against /shop.json

The client performs no retries or backoff. A failed request fails the
whole fetch and the caller decides what to do.

Documentation: https://shopify.dev/docs/api/usage/pagination-rest
"""

import logging
import re
from typing import Optional, List, Dict, Any

import httpx

from shopsync.integrations.shopify.exceptions import (
    ShopifyError,
    ShopifyAuthenticationError,
    ShopifyRateLimitError,
    ShopifyConnectionError,
    ShopifyNotFoundError,
    ShopifyResponseError,
)
from shopsync.integrations.shopify.models import (
    ConnectionFailureReason,
    ConnectionTestResult,
    ShopifyPage,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_API_VERSION = "2024-01"
DEFAULT_PAGE_SIZE = 250
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

UNREACHABLE_MESSAGE = "Could not reach Shopify store. Check if the shop domain is correct."

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')


def normalize_shop_domain(shop_domain: str) -> str:
    """Strip scheme and trailing slash: https://x.myshopify.com/ -> x.myshopify.com"""
    return re.sub(r"^https?://", "", shop_domain.strip()).rstrip("/")


def parse_next_page_info(link_header: Optional[str]) -> Optional[str]:
    """
    Extract the page_info cursor of the rel="next" link.

    Args:
        link_header: Raw Link response header (may be None)

    Returns:
        Cursor string, or None when there is no next page
    """
    if not link_header or 'rel="next"' not in link_header:
        return None

    match = _NEXT_LINK_RE.search(link_header)
    if not match:
        return None

    return httpx.URL(match.group(1)).params.get("page_info")


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date and garbage values give None."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class ShopifyClient:
    """
    Async client for one store's Shopify Admin REST API.

    All methods are async and should be used with async/await.

    SECURITY: The access token is sent as X-Shopify-Access-Token and is
    never logged.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ):
        """
        Initialize Shopify client.

        Args:
            shop_domain: Store domain (e.g., 'mystore.myshopify.com')
            access_token: Admin API access token
            api_version: Admin API version
            page_size: Records per page (1..250)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
        """
        if not shop_domain:
            raise ValueError("shop_domain is required")
        if not access_token:
            raise ValueError("access_token is required")
        if not 1 <= page_size <= DEFAULT_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {DEFAULT_PAGE_SIZE}")

        self.shop_domain = normalize_shop_domain(shop_domain)
        self.api_version = api_version
        self.page_size = page_size
        self.base_url = f"https://{self.shop_domain}/admin/api/{api_version}"

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Make an HTTP request to the Admin API.

        Args:
            method: HTTP method
            endpoint: API endpoint path (e.g. '/orders.json')
            params: Query parameters

        Returns:
            The successful httpx.Response

        Raises:
            ShopifyError: On API errors
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = await self._client.request(method=method, url=url, params=params)
        except httpx.TimeoutException as e:
            logger.error(
                "Shopify API timeout",
                extra={"shop_domain": self.shop_domain, "endpoint": endpoint, "error": str(e)},
            )
            raise ShopifyConnectionError(f"Request timeout: {e}")
        except httpx.RequestError as e:
            logger.error(
                "Shopify API connection error",
                extra={"shop_domain": self.shop_domain, "endpoint": endpoint, "error": str(e)},
            )
            raise ShopifyConnectionError(f"Connection error: {e}")

        status_code = response.status_code

        if status_code in (401, 403):
            logger.error(
                "Shopify API authentication failed",
                extra={"shop_domain": self.shop_domain, "status_code": status_code, "endpoint": endpoint},
            )
            raise ShopifyAuthenticationError(status_code=status_code)

        if status_code == 402:
            raise ShopifyError("Store is frozen or payment required", status_code=402)

        if status_code == 404:
            raise ShopifyNotFoundError(message=f"Resource not found: {endpoint}")

        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                "Shopify API rate limited",
                extra={"shop_domain": self.shop_domain, "endpoint": endpoint, "retry_after": retry_after},
            )
            raise ShopifyRateLimitError(
                retry_after=parse_retry_after(retry_after)
            )

        if status_code >= 400:
            error_body = self._safe_json(response)
            logger.error(
                "Shopify API error",
                extra={
                    "shop_domain": self.shop_domain,
                    "status_code": status_code,
                    "endpoint": endpoint,
                    "response": str(error_body)[:500],
                },
            )
            raise ShopifyError(
                message=f"Shopify API error: {status_code}",
                status_code=status_code,
                response=error_body,
            )

        return response

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def fetch_page(
        self,
        resource: str,
        page_info: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> ShopifyPage:
        """
        Fetch one page of a collection.

        Shopify rejects most filters alongside page_info, so filters are
        only sent on the first page.

        Args:
            resource: Collection name ('customers', 'orders', 'products')
            page_info: Cursor from the previous page's Link header
            filters: Extra query parameters for the first page

        Returns:
            ShopifyPage with records and the next cursor

        Raises:
            ShopifyError: On API errors or malformed bodies
        """
        params: Dict[str, Any] = {"limit": self.page_size}
        if page_info:
            params["page_info"] = page_info
        elif filters:
            params.update(filters)

        response = await self._request("GET", f"/{resource}.json", params=params)

        try:
            body = response.json()
        except ValueError as e:
            raise ShopifyResponseError(f"Invalid JSON in {resource} response: {e}")

        records = body.get(resource) if isinstance(body, dict) else None
        if not isinstance(records, list):
            raise ShopifyResponseError(
                f"Response for {resource} is missing the '{resource}' collection"
            )

        return ShopifyPage(
            records=records,
            next_page_info=parse_next_page_info(response.headers.get("link")),
        )

    async def fetch_all(
        self,
        resource: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Walk every page of a collection and return all records in upstream order.

        Raises:
            ShopifyError: If any page request fails
        """
        records: List[Dict[str, Any]] = []
        page_info: Optional[str] = None
        pages = 0

        while True:
            page = await self.fetch_page(resource, page_info=page_info, filters=filters)
            records.extend(page.records)
            pages += 1

            if not page.has_next:
                break
            page_info = page.next_page_info

        logger.info(
            "Fetched Shopify collection",
            extra={
                "shop_domain": self.shop_domain,
                "resource": resource,
                "pages": pages,
                "record_count": len(records),
            },
        )

        return records

    async def fetch_customers(self) -> List[Dict[str, Any]]:
        """Fetch every customer of the store."""
        return await self.fetch_all("customers")

    async def fetch_orders(self) -> List[Dict[str, Any]]:
        """Fetch every order of the store, in any status."""
        return await self.fetch_all("orders", filters={"status": "any"})

    async def fetch_products(self) -> List[Dict[str, Any]]:
        """Fetch every product of the store."""
        return await self.fetch_all("products")

    async def test_connection(self) -> ConnectionTestResult:
        """
        Perform one authenticated request against /shop.json.

        Never raises for API or network failures; the outcome is reported
        in the returned ConnectionTestResult.
        """
        url = f"{self.base_url}/shop.json"

        try:
            response = await self._client.request(method="GET", url=url)
        except httpx.RequestError as e:
            logger.warning(
                "Shopify connection test failed: unreachable",
                extra={"shop_domain": self.shop_domain, "error": str(e)},
            )
            return ConnectionTestResult(
                success=False,
                reason=ConnectionFailureReason.UNREACHABLE,
                error=UNREACHABLE_MESSAGE,
            )

        status_code = response.status_code
        if status_code < 400:
            shop = self._safe_json(response).get("shop") or {}
            return ConnectionTestResult(success=True, shop_name=shop.get("name"))

        body = self._safe_json(response)
        error = body.get("errors") or response.reason_phrase or "Shopify API error"
        reason = (
            ConnectionFailureReason.INVALID_CREDENTIALS
            if status_code in (401, 403)
            else ConnectionFailureReason.OTHER
        )

        logger.warning(
            "Shopify connection test failed",
            extra={"shop_domain": self.shop_domain, "status_code": status_code, "reason": reason.value},
        )

        return ConnectionTestResult(
            success=False,
            reason=reason,
            error=str(error),
            status=status_code,
        )


def get_shopify_client(
    shop_domain: str,
    access_token: str,
    settings=None,
) -> ShopifyClient:
    """
    Factory function to create a ShopifyClient.

    Args:
        shop_domain: Store domain
        access_token: Decrypted access token
        settings: Optional IngestionSettings supplying version, page size and timeouts

    Returns:
        Configured ShopifyClient instance
    """
    if settings is None:
        return ShopifyClient(shop_domain=shop_domain, access_token=access_token)

    return ShopifyClient(
        shop_domain=shop_domain,
        access_token=access_token,
        api_version=settings.shopify_api_version,
        page_size=settings.shopify_page_size,
        timeout=settings.shopify_request_timeout_seconds,
        connect_timeout=settings.shopify_connect_timeout_seconds,
    )
