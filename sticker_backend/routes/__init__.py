"""API routes."""

from fastapi import APIRouter

from sticker_backend.routes import checkout, ops, stickers, webhooks

api_router = APIRouter()

# Storefront endpoints (calculator + cart)
api_router.include_router(stickers.router, prefix="/api", tags=["stickers"])
api_router.include_router(checkout.router, prefix="/api", tags=["checkout"])

# Ops endpoints (expired variant cleanup)
api_router.include_router(ops.router, prefix="/ops", tags=["ops"])

# Shopify webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
