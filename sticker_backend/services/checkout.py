"""Cart -> draft order translation.

Pricing rules per cart line:
- `_RealPrice` property present: it is the line total for the cart line.
  Unit price = total / quantity, kept at 4 decimals, then sent with 2.
- Otherwise: the storefront's nominal price, in minor units (cents) / 100.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sticker_backend.services.errors import ValidationError
from sticker_backend.services.shopify_client import RemoteError, RemoteErrorKind, ShopifyAdminClient
from sticker_backend.services.variants import UNIT_PRECISION, format_price

logger = logging.getLogger("uvicorn.error")

REAL_PRICE_PROPERTY = "_RealPrice"


class CartLineItem(BaseModel):
    """Line item as returned by the storefront's /cart.js."""

    model_config = ConfigDict(extra="ignore")

    product_title: str = ""
    variant_title: str | None = None
    quantity: int = 1
    price: int | float | None = Field(default=None, description="Nominal unit price in minor units")
    properties: dict[str, Any] | list[dict[str, Any]] | None = None


def iter_properties(item: CartLineItem) -> list[tuple[str, Any]]:
    """Cart properties as (name, value) pairs, in their original order.

    List-shaped entries without a "name" key cannot be expressed as a draft
    order property; they are dropped and logged.
    """
    props = item.properties
    if not props:
        return []
    if isinstance(props, dict):
        return list(props.items())
    pairs: list[tuple[str, Any]] = []
    for entry in props:
        if "name" not in entry:
            logger.warning(f"Dropping unnamed property on '{item.product_title}': {entry}")
            continue
        pairs.append((str(entry["name"]), entry.get("value")))
    return pairs


def _parse_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip().replace(",", "").lstrip("$").strip()
    if not cleaned:
        return None
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def resolve_unit_price(item: CartLineItem) -> Decimal:
    """Resolve the unit price a draft order line should carry.

    Raises:
        ValidationError: Declared price is unparseable/negative, quantity is
            not positive, or the item has no price at all.
    """
    if item.quantity <= 0:
        raise ValidationError(
            "Cart item quantity must be greater than 0",
            details={"product_title": item.product_title, "quantity": item.quantity},
        )

    declared = dict(iter_properties(item)).get(REAL_PRICE_PROPERTY)
    if declared not in (None, ""):
        total = _parse_decimal(declared)
        if total is None or total < 0:
            raise ValidationError(
                f"Invalid {REAL_PRICE_PROPERTY} value",
                details={"product_title": item.product_title, REAL_PRICE_PROPERTY: declared},
            )
        return (total / Decimal(item.quantity)).quantize(UNIT_PRECISION, rounding=ROUND_HALF_UP)

    nominal = _parse_decimal(item.price)
    if nominal is None:
        raise ValidationError(
            "Cart item has no price",
            details={"product_title": item.product_title},
        )
    return (nominal / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_draft_order_line_item(item: CartLineItem) -> dict[str, Any]:
    title = item.product_title
    if item.variant_title:
        title = f"{title} - {item.variant_title}"
    return {
        "title": title,
        "quantity": item.quantity,
        "price": format_price(resolve_unit_price(item)),
        "properties": [{"name": name, "value": value} for name, value in iter_properties(item)],
    }


def to_draft_order_line_items(items: list[CartLineItem]) -> list[dict[str, Any]]:
    """Translate cart line items 1:1 into draft order line items."""
    return [to_draft_order_line_item(item) for item in items]


async def create_checkout(client: ShopifyAdminClient, items: list[CartLineItem]) -> str:
    """Create a draft order for the cart and return its invoice URL.

    Raises:
        ValidationError: Empty cart or a line item with an unusable price.
        RemoteError: Shopify refused the draft order.
    """
    if not items:
        raise ValidationError("No items in cart")

    line_items = to_draft_order_line_items(items)
    logger.info(f"Creating draft order with {len(line_items)} line items")

    draft_order = await client.create_draft_order(line_items)
    invoice_url = draft_order.get("invoice_url")
    if not invoice_url:
        raise RemoteError(
            RemoteErrorKind.TRANSPORT,
            "createDraftOrder: draft order has no invoice_url",
            details={"draft_order_id": draft_order.get("id")},
        )
    logger.info(f"Draft order created id={draft_order.get('id')} invoice_url={invoice_url}")
    return str(invoice_url)
