"""
Shopify-specific exceptions for error handling.

Every failure contacting the store surfaces as a ShopifyError subclass;
the ingestion pipeline treats any of them as a failed fetch.
"""

from typing import Optional, Dict, Any


class ShopifyError(Exception):
    """Base exception for Shopify Admin API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class ShopifyAuthenticationError(ShopifyError):
    """Raised when the access token is rejected (401/403)."""

    def __init__(
        self,
        message: str = "Authentication failed - access token may be invalid or revoked",
        status_code: int = 401,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)


class ShopifyRateLimitError(ShopifyError):
    """Raised when the API call limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded - please retry after a delay",
        retry_after: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class ShopifyConnectionError(ShopifyError):
    """Raised when the store cannot be reached or the request times out."""

    def __init__(
        self,
        message: str = "Connection error - unable to reach Shopify store",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class ShopifyNotFoundError(ShopifyError):
    """Raised when the requested resource or shop does not exist (404)."""

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, status_code=404, **kwargs)


class ShopifyResponseError(ShopifyError):
    """Raised when a response body is not the expected JSON shape."""

    pass
