"""Ephemeral variant factory for custom stickers.

Flow:
1. Validate the submitted configuration (no remote call on failure)
2. Fingerprint the configuration + creation time -> SKU "{prefix}-{10 hex}"
3. Create the variant on the hidden host product
4. On a duplicate-option error, recover the existing variant with the same
   size/quantity label instead of failing
5. Attach metafields describing the variant (best-effort)

Price semantics:
- `price` is the line total for the whole pack (`quantity` pieces).
- The variant represents the pack, so its platform price is that total with
  2 decimals. The per-piece price (4 decimals) is only recorded in metadata.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
import hashlib
import json
import logging

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from sticker_backend.services.errors import ValidationError
from sticker_backend.services.shopify_client import (
    MetafieldEntry,
    MetafieldOutcome,
    RemoteError,
    RemoteErrorKind,
    ShopifyAdminClient,
    Variant,
)

logger = logging.getLogger("uvicorn.error")

FINGERPRINT_LENGTH = 10
CENTS = Decimal("0.01")
UNIT_PRECISION = Decimal("0.0001")

REQUIRED_FIELDS = ("price", "quantity", "width", "height", "vinyl_type")

# Field names as the storefront sends them, for error messages
_PUBLIC_NAMES = {
    "price": "price",
    "quantity": "qty",
    "width": "width",
    "height": "height",
    "vinyl_type": "vinyl",
}


class StickerConfiguration(BaseModel):
    """Sticker configuration submitted by the storefront calculator.

    Every field is optional at parse time; `validate_configuration` reports
    which required ones are missing.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str | None = None
    price: Decimal | None = None
    width: Decimal | None = None
    height: Decimal | None = None
    quantity: int | None = Field(default=None, validation_alias=AliasChoices("qty", "quantity"))
    finish: str | None = None
    vinyl_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("vinyl", "vinylType", "vinyl_type"),
    )
    sku_prefix: str | None = Field(
        default=None,
        validation_alias=AliasChoices("skuPrefix", "sku_prefix"),
    )


@dataclass
class EphemeralVariantResult:
    variant_id: int
    sku: str
    recovered: bool = False
    metadata: list[MetafieldOutcome] = field(default_factory=list)


def format_price(value: Decimal) -> str:
    """Format a price for the Admin API: fixed 2 decimals, half-up."""
    return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def unit_price(total: Decimal, quantity: int) -> Decimal:
    """Per-piece price from a line total, kept at 4 decimals."""
    return (total / Decimal(quantity)).quantize(UNIT_PRECISION, rounding=ROUND_HALF_UP)


def _format_dimension(value: Decimal) -> str:
    # 3 -> "3", 2.50 -> "2.5", 100 -> "100"
    return format(value.normalize(), "f")


def build_option_label(config: StickerConfiguration) -> str:
    """Human label stored in `option1`, e.g. '3" x 2.5" / 100 pcs'."""
    return f'{_format_dimension(config.width)}" x {_format_dimension(config.height)}" / {config.quantity} pcs'


def compute_fingerprint(config: StickerConfiguration, created_at: datetime) -> str:
    """Compute the short configuration fingerprint embedded in the SKU.

    Digest of vinyl, finish, size, quantity, price and creation time (ms).
    The timestamp makes repeats of the same configuration distinct.

    Returns:
        10 lowercase hex characters.
    """
    key_parts = "|".join(
        [
            (config.vinyl_type or "").strip().lower(),
            (config.finish or "").strip().lower(),
            _format_dimension(config.width),
            _format_dimension(config.height),
            str(config.quantity),
            format_price(config.price),
            str(int(created_at.timestamp() * 1000)),
        ]
    )
    return hashlib.sha256(key_parts.encode()).hexdigest()[:FINGERPRINT_LENGTH]


def build_sku(sku_prefix: str, fingerprint: str) -> str:
    return f"{sku_prefix}-{fingerprint}"


def resolve_sku_prefix(config: StickerConfiguration, default_prefix: str) -> str:
    """Pick the SKU prefix for a new variant.

    A caller-supplied prefix must be the configured one or extend it with a
    dash ("CUST" or "CUST-DIECUT"), otherwise the sweeper could not find it.
    """
    requested = (config.sku_prefix or "").strip().rstrip("-")
    if not requested:
        return default_prefix
    if requested == default_prefix or requested.startswith(f"{default_prefix}-"):
        return requested
    raise ValidationError(
        f"skuPrefix must start with {default_prefix}",
        details={"skuPrefix": config.sku_prefix},
    )


def validate_configuration(config: StickerConfiguration) -> None:
    """Raise `ValidationError` if the configuration cannot become a variant."""
    missing = [_PUBLIC_NAMES[name] for name in REQUIRED_FIELDS if _is_blank(getattr(config, name))]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )

    invalid: dict[str, str] = {}
    if config.quantity <= 0:
        invalid["qty"] = "must be greater than 0"
    if not config.price.is_finite() or config.price < 0:
        invalid["price"] = "must be a non-negative number"
    for name in ("width", "height"):
        value = getattr(config, name)
        if not value.is_finite() or value <= 0:
            invalid[name] = "must be greater than 0"
    if invalid:
        raise ValidationError("Invalid sticker configuration", details={"invalid": invalid})


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def build_variant_fields(config: StickerConfiguration, sku: str) -> dict[str, object]:
    """Variant body for the Admin API."""
    return {
        "option1": build_option_label(config),
        "price": format_price(config.price),
        "sku": sku,
        "taxable": True,
        "requires_shipping": True,
        "inventory_management": None,
        "inventory_policy": "continue",
    }


def build_metafields(
    config: StickerConfiguration,
    *,
    fingerprint: str,
    namespace: str,
    created_at: datetime,
    ttl_hours: float,
) -> list[MetafieldEntry]:
    """Metafields marking the variant as ephemeral, for audit and cleanup."""
    expires_at = created_at + timedelta(hours=ttl_hours)
    audit = {
        "title": config.title,
        "vinyl": config.vinyl_type,
        "finish": config.finish,
        "width": _format_dimension(config.width),
        "height": _format_dimension(config.height),
        "qty": config.quantity,
        "price": format_price(config.price),
        "unit_price": str(unit_price(config.price, config.quantity)),
    }
    return [
        MetafieldEntry(namespace, "ephemeral", "boolean", "true"),
        MetafieldEntry(namespace, "hash", "single_line_text_field", fingerprint),
        MetafieldEntry(namespace, "expires_at", "date_time", expires_at.isoformat(timespec="seconds")),
        MetafieldEntry(namespace, "config", "json", json.dumps(audit, sort_keys=True)),
    ]


def find_recoverable_variant(
    variants: list[Variant],
    *,
    label: str,
    sku_marker: str,
) -> Variant | None:
    """Find the existing ephemeral variant that blocks a duplicate label.

    Only variants carrying the ephemeral SKU marker qualify, so a permanent
    catalog variant is never handed out as a custom sticker.
    """
    for variant in variants:
        if variant.id is None or variant.option1 != label:
            continue
        if isinstance(variant.sku, str) and variant.sku.startswith(sku_marker):
            return variant
    return None


async def create_ephemeral_variant(
    client: ShopifyAdminClient,
    host_product_id: int,
    config: StickerConfiguration,
    *,
    sku_prefix: str,
    ttl_hours: float,
    metafield_namespace: str = "custom_sticker",
    now: datetime | None = None,
) -> EphemeralVariantResult:
    """Create a temporary variant for one sticker configuration.

    Args:
        client: Admin API client.
        host_product_id: Hidden product carrying the temporary variants.
        config: Submitted configuration.
        sku_prefix: Configured ephemeral SKU prefix (without the dash).
        ttl_hours: Hours until the sweeper may delete the variant.
        metafield_namespace: Namespace for the audit metafields.
        now: Creation time (defaults to current UTC time).

    Returns:
        Variant id and SKU; `recovered` is True when an existing variant was
        reused after a duplicate error.

    Raises:
        ValidationError: Configuration is incomplete or invalid.
        RemoteError: Shopify rejected the creation and no variant could be recovered.
    """
    validate_configuration(config)
    prefix = resolve_sku_prefix(config, sku_prefix)

    created_at = now or datetime.now(timezone.utc)
    fingerprint = compute_fingerprint(config, created_at)
    sku = build_sku(prefix, fingerprint)
    fields = build_variant_fields(config, sku)

    logger.info(f"Creating ephemeral variant sku={sku} option1={fields['option1']!r} price={fields['price']}")

    try:
        variant = await client.create_variant(host_product_id, fields)
    except RemoteError as e:
        if e.kind is not RemoteErrorKind.DUPLICATE:
            raise
        existing = await _recover_duplicate(
            client,
            host_product_id,
            label=str(fields["option1"]),
            sku_marker=f"{sku_prefix}-",
        )
        if existing is None:
            raise
        if existing.price is not None and existing.price != fields["price"]:
            logger.warning(
                f"Recovered variant {existing.id} has price {existing.price}, requested {fields['price']}"
            )
        logger.info(f"Duplicate option {fields['option1']!r}, reusing variant {existing.id} sku={existing.sku}")
        return EphemeralVariantResult(variant_id=existing.id, sku=existing.sku, recovered=True)

    metadata = await client.attach_metadata(
        variant.id,
        build_metafields(
            config,
            fingerprint=fingerprint,
            namespace=metafield_namespace,
            created_at=created_at,
            ttl_hours=ttl_hours,
        ),
    )
    failed = [m.key for m in metadata if not m.ok]
    if failed:
        logger.warning(f"Variant {variant.id} created without metafields: {failed}")

    logger.info(f"Ephemeral variant created id={variant.id} sku={variant.sku or sku}")
    return EphemeralVariantResult(variant_id=variant.id, sku=variant.sku or sku, metadata=metadata)


async def _recover_duplicate(
    client: ShopifyAdminClient,
    host_product_id: int,
    *,
    label: str,
    sku_marker: str,
) -> Variant | None:
    try:
        variants = await client.list_variants(host_product_id)
    except RemoteError as e:
        logger.warning(f"Duplicate recovery listing failed for product={host_product_id}: {e}")
        return None
    return find_recoverable_variant(variants, label=label, sku_marker=sku_marker)
