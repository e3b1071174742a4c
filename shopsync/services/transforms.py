"""
Mapping of raw Shopify records to local column values.

Each transform takes one upstream record (a decoded JSON object) and
returns the natural key plus the fields to write. Anything that cannot be
coerced raises RecordTransformError naming the entity type and record id.

Coercion rules:
- ids: integral numbers become str(int); strings are trimmed
- money: Decimal with two places, absent/empty is 0
- counts: int, absent is 0, bools rejected
- optional text: empty string becomes None
- timestamps: ISO-8601 (trailing Z accepted), converted to UTC
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional

from shopsync.services.errors import RecordTransformError

CENTS = Decimal("0.01")
DEFAULT_CURRENCY = "USD"


@dataclass
class MappedRecord:
    """Natural key and column values for one upstream record."""

    shopify_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MappedOrder(MappedRecord):
    """
    Mapped order plus its line items.

    line_items is None when the upstream record carried no line_items
    key, meaning existing line items must be left untouched.
    """

    line_items: Optional[List[Dict[str, Any]]] = None


class _Coercer:
    """Field coercion bound to one record for error reporting."""

    def __init__(self, entity_type: str, raw: Any):
        if not isinstance(raw, Mapping):
            raise RecordTransformError(
                f"{entity_type} record must be an object, got {type(raw).__name__}",
                entity_type=entity_type,
            )
        self.entity_type = entity_type
        self.raw = raw
        self.record_id: Optional[str] = None

    def fail(self, message: str) -> RecordTransformError:
        return RecordTransformError(
            f"{self.entity_type} {self.record_id or '<unknown>'}: {message}",
            entity_type=self.entity_type,
            record_id=self.record_id,
        )

    def canonical_id(self, value: Any, name: str, required: bool = True) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise self.fail(f"missing required id '{name}'")
            return None
        if isinstance(value, bool):
            raise self.fail(f"invalid id '{name}': {value!r}")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, str):
            return value.strip()
        raise self.fail(f"invalid id '{name}': {value!r}")

    def money(self, name: str, source: Optional[Mapping] = None) -> Decimal:
        value = (self.raw if source is None else source).get(name)
        if value is None or value == "":
            return Decimal("0.00")
        if isinstance(value, bool):
            raise self.fail(f"invalid amount '{name}': {value!r}")
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise self.fail(f"invalid amount '{name}': {value!r}")
        if not amount.is_finite():
            raise self.fail(f"invalid amount '{name}': {value!r}")
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)

    def integer(self, name: str, source: Optional[Mapping] = None) -> int:
        value = (self.raw if source is None else source).get(name)
        if value is None or value == "":
            return 0
        if isinstance(value, bool):
            raise self.fail(f"invalid integer '{name}': {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise self.fail(f"invalid integer '{name}': {value!r}")

    def text(self, name: str, source: Optional[Mapping] = None) -> Optional[str]:
        value = (self.raw if source is None else source).get(name)
        if value is None or value == "":
            return None
        return str(value)

    def timestamp(self, name: str, required: bool = False) -> Optional[datetime]:
        value = self.raw.get(name)
        if value is None or value == "":
            if required:
                raise self.fail(f"missing required timestamp '{name}'")
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise self.fail(f"invalid timestamp '{name}': {value!r}")
        else:
            raise self.fail(f"invalid timestamp '{name}': {value!r}")
        return ensure_aware(parsed)


def ensure_aware(value: datetime) -> datetime:
    """Normalize to UTC. Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def transform_customer(raw: Any) -> MappedRecord:
    c = _Coercer("customer", raw)
    c.record_id = c.canonical_id(raw.get("id"), "id")

    return MappedRecord(
        shopify_id=c.record_id,
        fields={
            "email": c.text("email"),
            "first_name": c.text("first_name"),
            "last_name": c.text("last_name"),
            "total_spent": c.money("total_spent"),
            "orders_count": c.integer("orders_count"),
            "shopify_created_at": c.timestamp("created_at"),
            "shopify_updated_at": c.timestamp("updated_at"),
        },
    )


def transform_product(raw: Any) -> MappedRecord:
    """body_html is stored as description; total_sales is never mapped."""
    c = _Coercer("product", raw)
    c.record_id = c.canonical_id(raw.get("id"), "id")

    return MappedRecord(
        shopify_id=c.record_id,
        fields={
            "title": c.text("title"),
            "handle": c.text("handle"),
            "description": c.text("body_html"),
            "vendor": c.text("vendor"),
            "product_type": c.text("product_type"),
            "status": c.text("status"),
            "shopify_created_at": c.timestamp("created_at"),
            "shopify_updated_at": c.timestamp("updated_at"),
        },
    )


def transform_line_item(c: "_Coercer", item: Any) -> Dict[str, Any]:
    if not isinstance(item, Mapping):
        raise c.fail(f"line item must be an object, got {type(item).__name__}")

    return {
        "shopify_id": c.canonical_id(item.get("id"), "line_items.id"),
        "title": c.text("title", item),
        "quantity": c.integer("quantity", item),
        "price": c.money("price", item),
        "product_shopify_id": c.canonical_id(
            item.get("product_id"), "line_items.product_id", required=False
        ),
    }


def transform_order(raw: Any) -> MappedOrder:
    """
    Map an order and its line items.

    order_number falls back to number; created_at is required and becomes
    order_date. The customer reference is kept raw for link resolution.
    """
    c = _Coercer("order", raw)
    c.record_id = c.canonical_id(raw.get("id"), "id")

    order_number = raw.get("order_number")
    if order_number in (None, ""):
        order_number = raw.get("number")

    customer = raw.get("customer")
    customer_shopify_id = None
    if isinstance(customer, Mapping):
        customer_shopify_id = c.canonical_id(customer.get("id"), "customer.id", required=False)

    created_at = c.timestamp("created_at", required=True)

    line_items = None
    if "line_items" in raw:
        raw_items = raw.get("line_items") or []
        if not isinstance(raw_items, list):
            raise c.fail("line_items must be a list")
        line_items = [transform_line_item(c, item) for item in raw_items]

    return MappedOrder(
        shopify_id=c.record_id,
        fields={
            "order_number": None if order_number in (None, "") else str(order_number),
            "customer_shopify_id": customer_shopify_id,
            "email": c.text("email"),
            "financial_status": c.text("financial_status"),
            "fulfillment_status": c.text("fulfillment_status"),
            "subtotal_price": c.money("subtotal_price"),
            "total_tax": c.money("total_tax"),
            "total_price": c.money("total_price"),
            "currency": c.text("currency") or DEFAULT_CURRENCY,
            "order_date": created_at,
            "shopify_created_at": created_at,
            "shopify_updated_at": c.timestamp("updated_at"),
        },
        line_items=line_items,
    )


def classify_created(
    shopify_created_at: Optional[datetime],
    now: datetime,
    window_seconds: int,
) -> bool:
    """
    Reporting heuristic: a record counts as created when Shopify created it
    strictly within the last window_seconds before now.

    Records without a creation timestamp count as updated.
    """
    if shopify_created_at is None:
        return False
    return ensure_aware(shopify_created_at) > ensure_aware(now) - timedelta(seconds=window_seconds)
