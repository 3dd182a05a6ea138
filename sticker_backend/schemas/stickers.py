"""Schemas for the custom sticker endpoint (/api/custom-sticker)."""

from pydantic import BaseModel


class CustomStickerResponse(BaseModel):
    """Temporary variant the storefront adds to the cart."""

    variant_id: int
    sku: str
