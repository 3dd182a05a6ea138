"""Shopify webhook receivers.

POST /webhooks/orders-create     - delete the ephemeral variants of a placed order
POST /webhooks/checkouts-update  - acknowledged, nothing to do

Both answer 200 "ok" for any payload; a non-2xx answer makes Shopify retry
and eventually drop the subscription. Order cleanup runs after the response
as a background task. Malformed payloads, missing Shopify config and
per-variant failures are only logged; the next sweep picks up what is missed.
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from fastapi.responses import PlainTextResponse

from sticker_backend.routes.deps import get_optional_catalog_client
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.services.sweeper import purge_ordered_variants
from sticker_backend.settings import Settings, get_settings

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.post("/orders-create", response_class=PlainTextResponse)
async def handle_orders_create(
    background_tasks: BackgroundTasks,
    order: Any = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: ShopifyAdminClient | None = Depends(get_optional_catalog_client),
) -> str:
    """Schedule deletion of the order's ephemeral variants."""
    if not isinstance(order, dict):
        logger.warning(f"orders/create webhook ignored: payload is {type(order).__name__}")
        return "ok"
    line_items = order.get("line_items")
    if not isinstance(line_items, list) or not line_items:
        return "ok"
    if client is None:
        logger.error(f"orders/create webhook order={order.get('id')} skipped: Shopify not configured")
        return "ok"

    logger.info(f"orders/create webhook order={order.get('id')} line_items={len(line_items)}")
    background_tasks.add_task(
        purge_ordered_variants,
        client,
        line_items,
        sku_marker=settings.ephemeral_sku_marker,
        concurrency=settings.shopify_max_concurrency,
    )
    return "ok"


@router.post("/checkouts-update", response_class=PlainTextResponse)
async def handle_checkouts_update() -> str:
    """Abandoned-checkout updates need no action; the sweep covers them."""
    return "ok"
