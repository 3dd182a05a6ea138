"""Schemas for the checkout endpoint (/api/create-checkout)."""

from pydantic import BaseModel, Field

from sticker_backend.services.checkout import CartLineItem


class CheckoutRequest(BaseModel):
    """Cart contents as posted by the storefront."""

    items: list[CartLineItem] = Field(default_factory=list)


class CheckoutResponse(BaseModel):
    invoice_url: str
