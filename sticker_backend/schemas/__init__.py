"""Pydantic schemas for API request/response validation."""

from sticker_backend.schemas.checkout import CheckoutRequest, CheckoutResponse
from sticker_backend.schemas.common import ErrorResponse
from sticker_backend.schemas.ops import CleanupCandidate, CleanupResponse, CleanupResult
from sticker_backend.schemas.stickers import CustomStickerResponse

__all__ = [
    "CheckoutRequest",
    "CheckoutResponse",
    "CleanupCandidate",
    "CleanupResponse",
    "CleanupResult",
    "CustomStickerResponse",
    "ErrorResponse",
]
