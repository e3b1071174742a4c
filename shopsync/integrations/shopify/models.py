"""
Data models for Shopify client results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionFailureReason(str, Enum):
    """Structured reason attached to a connection test result."""

    OK = "ok"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNREACHABLE = "unreachable"
    OTHER = "other"


@dataclass
class ConnectionTestResult:
    """Outcome of a single authenticated request against /shop.json."""

    success: bool
    reason: ConnectionFailureReason = ConnectionFailureReason.OK
    error: Optional[str] = None
    status: Optional[int] = None
    shop_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "reason": self.reason.value}
        if self.error is not None:
            data["error"] = self.error
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass
class ShopifyPage:
    """One page of a cursor-paginated collection."""

    records: List[Dict[str, Any]] = field(default_factory=list)
    next_page_info: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return bool(self.next_page_info)
