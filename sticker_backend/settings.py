"""Application settings via Pydantic Settings."""

from functools import lru_cache
import json
import re

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalize_product_id(value: object) -> int:
    """
    Normalize a Shopify product identifier to its numeric form.

    Accepts plain numbers, numeric strings and GraphQL global ids
    (``gid://shopify/Product/123456``). Anything without digits becomes 0,
    which the app treats as "not configured".
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    tail = str(value).strip().rsplit("/", 1)[-1]
    digits = re.sub(r"\D", "", tail)
    return int(digits) if digits else 0


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = "Sticker Backend"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS (storefront theme calls us cross-origin)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("CORS_ORIGINS", "ALLOWED_ORIGINS"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        """
        Accept either:
        - JSON array string: '["https://a.com","http://localhost:3000"]'
        - Comma-separated string: "https://a.com,http://localhost:3000"
        - Already-parsed list[str]
        """
        if v is None:
            return []
        if isinstance(v, list):
            return [str(x).strip() for x in v if str(x).strip()]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError:
                    parsed = s.split(",")
                if isinstance(parsed, list):
                    return [str(x).strip() for x in parsed if str(x).strip()]
                return [str(parsed).strip()]
            return [part.strip() for part in s.split(",") if part.strip()]
        return [str(v).strip()] if str(v).strip() else []

    # Shopify Admin API
    shopify_store_domain: str = Field(
        default="",
        validation_alias=AliasChoices("SHOPIFY_STORE_DOMAIN", "SHOPIFY_SHOP"),
        description="e.g. stickemupshop.myshopify.com",
    )
    shopify_admin_access_token: str = Field(
        default="",
        validation_alias=AliasChoices("SHOPIFY_ADMIN_ACCESS_TOKEN", "SHOPIFY_ACCESS_TOKEN"),
    )
    shopify_api_version: str = Field(
        default="2025-01",
        validation_alias=AliasChoices("SHOPIFY_API_VERSION"),
    )
    shopify_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices("SHOPIFY_TIMEOUT_SECONDS"),
        gt=0,
    )
    shopify_max_concurrency: int = Field(
        default=1,
        validation_alias=AliasChoices("SHOPIFY_MAX_CONCURRENCY"),
        ge=1,
        le=8,
        description="Max concurrent per-item Admin API calls (metafields, deletions)",
    )

    # Ephemeral variants
    host_product_id: int = Field(
        default=0,
        validation_alias=AliasChoices("HOST_PRODUCT_ID"),
        description="Hidden product that carries the temporary variants",
    )
    sku_prefix: str = Field(
        default="CUST",
        validation_alias=AliasChoices("SKU_PREFIX", "EPHEMERAL_SKU_PREFIX"),
        min_length=1,
    )
    cleanup_ttl_hours: float = Field(
        default=168.0,
        validation_alias=AliasChoices("CLEANUP_TTL_HOURS", "TTL_HOURS"),
        gt=0,
    )
    metafield_namespace: str = Field(
        default="custom_sticker",
        validation_alias=AliasChoices("METAFIELD_NAMESPACE"),
    )

    @field_validator("host_product_id", mode="before")
    @classmethod
    def _parse_host_product_id(cls, v: object) -> int:
        return _normalize_product_id(v)

    @field_validator("sku_prefix", mode="before")
    @classmethod
    def _strip_sku_prefix(cls, v: object) -> object:
        # "CUST-" and "CUST" mean the same marker
        if isinstance(v, str):
            return v.strip().rstrip("-")
        return v

    @property
    def ephemeral_sku_marker(self) -> str:
        """SKU prefix every ephemeral variant carries (e.g. ``CUST-``)."""
        return f"{self.sku_prefix}-"

    @property
    def shopify_admin_base_url(self) -> str:
        domain = self.shopify_store_domain.strip().removeprefix("https://").rstrip("/")
        return f"https://{domain}/admin/api/{self.shopify_api_version}"

    def missing_shopify_config(self, *, require_host_product: bool = True) -> list[str]:
        """Names of the env vars the Shopify-backed routes cannot run without."""
        missing: list[str] = []
        if not self.shopify_store_domain.strip():
            missing.append("SHOPIFY_STORE_DOMAIN")
        if not self.shopify_admin_access_token.strip():
            missing.append("SHOPIFY_ADMIN_ACCESS_TOKEN")
        if require_host_product and not self.host_product_id:
            missing.append("HOST_PRODUCT_ID")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
