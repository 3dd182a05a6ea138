"""Checkout endpoint.

POST /api/create-checkout - turn cart contents into a draft order and return
its invoice URL (the secure checkout link).
"""

from fastapi import APIRouter, Depends

from sticker_backend.routes.deps import get_catalog_client
from sticker_backend.schemas import CheckoutRequest, CheckoutResponse, ErrorResponse
from sticker_backend.services.checkout import create_checkout
from sticker_backend.services.shopify_client import ShopifyAdminClient

router = APIRouter()


@router.post(
    "/create-checkout",
    response_model=CheckoutResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_checkout_route(
    request: CheckoutRequest,
    client: ShopifyAdminClient = Depends(get_catalog_client),
) -> CheckoutResponse:
    """Create a draft order priced from the cart's `_RealPrice` properties."""
    invoice_url = await create_checkout(client, request.items)
    return CheckoutResponse(invoice_url=invoice_url)
