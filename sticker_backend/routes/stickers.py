"""Custom sticker endpoint.

POST /api/custom-sticker - create a temporary variant with the calculator's
price on the hidden host product.

Routers are thin: validation, fingerprinting and recovery live in
`services.variants`.
"""

from fastapi import APIRouter, Depends

from sticker_backend.routes.deps import get_catalog_client, require_host_product
from sticker_backend.schemas import CustomStickerResponse, ErrorResponse
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.services.variants import StickerConfiguration, create_ephemeral_variant
from sticker_backend.settings import Settings, get_settings

router = APIRouter()


@router.post(
    "/custom-sticker",
    response_model=CustomStickerResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_custom_sticker(
    config: StickerConfiguration,
    settings: Settings = Depends(get_settings),
    host_product_id: int = Depends(require_host_product),
    client: ShopifyAdminClient = Depends(get_catalog_client),
) -> CustomStickerResponse:
    """Create an ephemeral variant for one sticker configuration.

    Body: {title, price, width, height, qty, finish, vinyl, skuPrefix?}

    Returns:
        The variant id and SKU to add to the storefront cart.
    """
    result = await create_ephemeral_variant(
        client,
        host_product_id,
        config,
        sku_prefix=settings.sku_prefix,
        ttl_hours=settings.cleanup_ttl_hours,
        metafield_namespace=settings.metafield_namespace,
    )
    return CustomStickerResponse(variant_id=result.variant_id, sku=result.sku)
