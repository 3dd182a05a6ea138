"""Shared route dependencies.

The Shopify client is created once per process (see `main.lifespan`) from an
explicit Settings instance. Tests replace `get_settings` / `get_catalog_client`
through `app.dependency_overrides`.
"""

import logging

from fastapi import Depends, Request

from sticker_backend.services.errors import ConfigurationError
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.settings import Settings, get_settings

logger = logging.getLogger("uvicorn.error")


def get_catalog_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> ShopifyAdminClient:
    """Return the process-wide Shopify client, creating it on first use."""
    missing = settings.missing_shopify_config(require_host_product=False)
    if missing:
        raise ConfigurationError(missing)
    client = getattr(request.app.state, "catalog_client", None)
    if client is None:
        client = ShopifyAdminClient(settings)
        request.app.state.catalog_client = client
    return client


def require_host_product(settings: Settings = Depends(get_settings)) -> int:
    """Host product id, or a configuration error if it is not set."""
    if not settings.host_product_id:
        raise ConfigurationError(["HOST_PRODUCT_ID"])
    return settings.host_product_id


def get_optional_catalog_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> ShopifyAdminClient | None:
    """Like `get_catalog_client`, but None when Shopify is not configured (webhooks)."""
    try:
        return get_catalog_client(request, settings)
    except ConfigurationError as e:
        logger.error(f"Shopify client unavailable: {e}")
        return None
