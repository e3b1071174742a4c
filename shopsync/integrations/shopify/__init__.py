"""
Shopify Admin REST API integration.

Usage:
    from shopsync.integrations.shopify import get_shopify_client

    async with get_shopify_client(shop_domain, access_token, settings) as client:
        orders = await client.fetch_orders()
"""

from shopsync.integrations.shopify.client import (
    ShopifyClient,
    get_shopify_client,
    normalize_shop_domain,
    parse_next_page_info,
)
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

__all__ = [
    "ShopifyClient",
    "get_shopify_client",
    "normalize_shop_domain",
    "parse_next_page_info",
    "ShopifyError",
    "ShopifyAuthenticationError",
    "ShopifyRateLimitError",
    "ShopifyConnectionError",
    "ShopifyNotFoundError",
    "ShopifyResponseError",
    "ConnectionFailureReason",
    "ConnectionTestResult",
    "ShopifyPage",
]
