"""Tests for the ephemeral variant factory."""

from datetime import datetime, timezone
from decimal import Decimal
import json
import re

import pytest

from conftest import HOST_PRODUCT_ID, FakeShopify
from sticker_backend.services.errors import ValidationError
from sticker_backend.services.shopify_client import RemoteError, RemoteErrorKind, ShopifyAdminClient
from sticker_backend.services.variants import (
    StickerConfiguration,
    build_option_label,
    compute_fingerprint,
    create_ephemeral_variant,
    format_price,
    unit_price,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
PRODUCT_VARIANTS = f"/products/{HOST_PRODUCT_ID}/variants.json"

BASE_PAYLOAD = {
    "title": "Custom Die-Cut Stickers",
    "price": "168.00",
    "width": 3,
    "height": 3,
    "qty": 350,
    "finish": "Glossy",
    "vinyl": "White Vinyl",
}

DUPLICATE_ERRORS = {"errors": {"base": ["The variant '3\" x 3\" / 350 pcs' already exists."]}}


def make_config(**overrides: object) -> StickerConfiguration:
    payload = {**BASE_PAYLOAD, **overrides}
    payload = {k: v for k, v in payload.items() if v is not None}
    return StickerConfiguration.model_validate(payload)


async def create(client: ShopifyAdminClient, config: StickerConfiguration, **kwargs: object):
    return await create_ephemeral_variant(
        client,
        HOST_PRODUCT_ID,
        config,
        sku_prefix="CUST",
        ttl_hours=48,
        now=NOW,
        **kwargs,
    )


@pytest.mark.parametrize("missing", ["price", "qty", "width", "height", "vinyl"])
async def test_missing_required_field_makes_no_remote_call(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify, missing: str
) -> None:
    config = make_config(**{missing: None})

    with pytest.raises(ValidationError) as exc_info:
        await create(catalog_client, config)

    assert exc_info.value.details == {"missing": [missing]}
    assert shopify.requests == []


@pytest.mark.parametrize("qty", [0, -5])
async def test_non_positive_quantity_is_rejected(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify, qty: int
) -> None:
    with pytest.raises(ValidationError):
        await create(catalog_client, make_config(qty=qty))
    assert shopify.requests == []


async def test_blank_vinyl_counts_as_missing(catalog_client: ShopifyAdminClient, shopify: FakeShopify) -> None:
    with pytest.raises(ValidationError):
        await create(catalog_client, make_config(vinyl="  "))
    assert shopify.requests == []


async def test_creates_variant_with_prefixed_sku_and_metadata(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify
) -> None:
    result = await create(catalog_client, make_config())

    assert re.fullmatch(r"CUST-[0-9a-f]{10}", result.sku)
    assert result.recovered is False

    [request] = shopify.calls("POST", PRODUCT_VARIANTS)
    body = json.loads(request.content)["variant"]
    assert body == {
        "option1": '3" x 3" / 350 pcs',
        "price": "168.00",
        "sku": result.sku,
        "taxable": True,
        "requires_shipping": True,
        "inventory_management": None,
        "inventory_policy": "continue",
    }

    metafield_calls = shopify.calls("POST", f"/variants/{result.variant_id}/metafields.json")
    metafields = {json.loads(r.content)["metafield"]["key"]: json.loads(r.content)["metafield"] for r in metafield_calls}
    assert set(metafields) == {"ephemeral", "hash", "expires_at", "config"}
    assert metafields["ephemeral"]["value"] == "true"
    assert metafields["hash"]["value"] == result.sku.removeprefix("CUST-")
    assert metafields["expires_at"]["value"] == "2026-10-21T12:00:00+00:00"
    audit = json.loads(metafields["config"]["value"])
    assert audit["unit_price"] == "0.4800"
    assert audit["vinyl"] == "White Vinyl"
    assert all(m["namespace"] == "custom_sticker" for m in metafields.values())


async def test_metadata_failure_does_not_fail_creation(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify
) -> None:
    shopify.on("POST", "/variants/9001/metafields.json", 500, json_body={"errors": "Internal error"})

    result = await create(catalog_client, make_config())

    assert result.variant_id == 9001
    assert len(result.metadata) == 4
    assert not any(m.ok for m in result.metadata)


async def test_duplicate_recovers_existing_variant_by_label(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify
) -> None:
    shopify.on("POST", PRODUCT_VARIANTS, 422, json_body=DUPLICATE_ERRORS)
    shopify.variants = [
        {"id": 1, "sku": None, "option1": "Default Title"},
        {"id": 77, "sku": "CUST-0123456789", "option1": '3" x 3" / 350 pcs', "price": "168.00"},
    ]

    result = await create(catalog_client, make_config())

    assert result.variant_id == 77
    assert result.sku == "CUST-0123456789"
    assert result.recovered is True
    assert shopify.calls("POST", "/variants/77/metafields.json") == []


async def test_duplicate_without_match_propagates(catalog_client: ShopifyAdminClient, shopify: FakeShopify) -> None:
    shopify.on("POST", PRODUCT_VARIANTS, 422, json_body=DUPLICATE_ERRORS)
    shopify.variants = [{"id": 77, "sku": "CUST-0123456789", "option1": '2" x 2" / 50 pcs'}]

    with pytest.raises(RemoteError) as exc_info:
        await create(catalog_client, make_config())

    assert exc_info.value.kind is RemoteErrorKind.DUPLICATE


async def test_duplicate_never_recovers_catalog_variant(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify
) -> None:
    shopify.on("POST", PRODUCT_VARIANTS, 422, json_body=DUPLICATE_ERRORS)
    shopify.variants = [{"id": 5, "sku": "STD-3X3", "option1": '3" x 3" / 350 pcs'}]

    with pytest.raises(RemoteError):
        await create(catalog_client, make_config())


async def test_other_remote_errors_propagate(catalog_client: ShopifyAdminClient, shopify: FakeShopify) -> None:
    shopify.on("POST", PRODUCT_VARIANTS, 422, json_body={"errors": {"price": ["must be a number"]}})

    with pytest.raises(RemoteError) as exc_info:
        await create(catalog_client, make_config())

    assert exc_info.value.kind is RemoteErrorKind.VALIDATION
    assert shopify.calls("GET", PRODUCT_VARIANTS) == []


async def test_caller_prefix_must_extend_configured_prefix(
    catalog_client: ShopifyAdminClient, shopify: FakeShopify
) -> None:
    result = await create(catalog_client, make_config(skuPrefix="CUST-DIECUT"))
    assert re.fullmatch(r"CUST-DIECUT-[0-9a-f]{10}", result.sku)

    shopify.requests.clear()
    with pytest.raises(ValidationError):
        await create(catalog_client, make_config(skuPrefix="PERM"))
    assert shopify.requests == []


def test_fingerprint_is_deterministic_per_timestamp() -> None:
    config = make_config()
    later = datetime(2026, 10, 19, 12, 0, 1, tzinfo=timezone.utc)

    assert compute_fingerprint(config, NOW) == compute_fingerprint(config, NOW)
    assert compute_fingerprint(config, NOW) != compute_fingerprint(config, later)
    assert re.fullmatch(r"[0-9a-f]{10}", compute_fingerprint(config, NOW))


def test_option_label_and_price_formatting() -> None:
    assert build_option_label(make_config(width="2.50", height=4, qty=100)) == '2.5" x 4" / 100 pcs'
    assert format_price(Decimal("12.5")) == "12.50"
    assert format_price(Decimal("0.005")) == "0.01"
    assert unit_price(Decimal("168.00"), 350) == Decimal("0.4800")
