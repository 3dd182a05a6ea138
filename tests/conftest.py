"""Shared fixtures: settings, an in-memory Shopify Admin API and API clients."""

from collections.abc import Callable
import json
import re
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from sticker_backend.main import app
from sticker_backend.routes.deps import get_catalog_client, get_optional_catalog_client
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.settings import Settings, get_settings

API_PREFIX = "/admin/api/2025-01"
HOST_PRODUCT_ID = 111

Handler = Callable[[httpx.Request], httpx.Response]


class FakeShopify:
    """Minimal stand-in for the Admin REST endpoints, used as a MockTransport handler.

    Default behavior keeps variants in memory; `on()` overrides one
    (method, path) pair with a fixed response or a callable.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.variants: list[dict[str, Any]] = []
        self._overrides: dict[tuple[str, str], Handler] = {}
        self._next_id = 9000

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        *,
        json_body: Any = None,
        text: str | None = None,
        handler: Handler | None = None,
    ) -> None:
        if handler is None:

            def handler(request: httpx.Request) -> httpx.Response:
                if text is not None:
                    return httpx.Response(status, text=text)
                if json_body is not None:
                    return httpx.Response(status, json=json_body)
                return httpx.Response(status)

        self._overrides[(method.upper(), path)] = handler

    def calls(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and (path is None or self._path(r) == path)
        ]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix(API_PREFIX)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)
        override = self._overrides.get((request.method, path))
        if override is not None:
            return override(request)

        if request.method == "GET" and re.fullmatch(r"/products/\d+/variants\.json", path):
            return httpx.Response(200, json={"variants": self.variants})

        if request.method == "POST" and re.fullmatch(r"/products/\d+/variants\.json", path):
            body = json.loads(request.content)["variant"]
            self._next_id += 1
            variant = {
                "id": self._next_id,
                "product_id": int(path.split("/")[2]),
                "title": body.get("option1"),
                "created_at": "2026-10-19T12:00:00-04:00",
                **body,
            }
            self.variants.append(variant)
            return httpx.Response(201, json={"variant": variant})

        if request.method == "POST" and re.fullmatch(r"/variants/\d+/metafields\.json", path):
            body = json.loads(request.content)["metafield"]
            return httpx.Response(201, json={"metafield": {"id": 1, **body}})

        if request.method == "DELETE" and re.fullmatch(r"/variants/\d+\.json", path):
            variant_id = int(path.split("/")[2].removesuffix(".json"))
            self.variants = [v for v in self.variants if v.get("id") != variant_id]
            return httpx.Response(200, json={})

        if request.method == "POST" and path == "/draft_orders.json":
            body = json.loads(request.content)["draft_order"]
            return httpx.Response(
                201,
                json={
                    "draft_order": {
                        "id": 555,
                        "invoice_url": "https://test-shop.myshopify.com/123/invoices/abc",
                        "line_items": body["line_items"],
                    }
                },
            )

        return httpx.Response(404, json={"errors": "Not Found"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        SHOPIFY_STORE_DOMAIN="test-shop.myshopify.com",
        SHOPIFY_ADMIN_ACCESS_TOKEN="shpat_test",
        SHOPIFY_API_VERSION="2025-01",
        HOST_PRODUCT_ID=HOST_PRODUCT_ID,
        SKU_PREFIX="CUST",
        CLEANUP_TTL_HOURS=48,
    )


@pytest.fixture
def shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
async def catalog_client(settings: Settings, shopify: FakeShopify):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(shopify))
    client = ShopifyAdminClient(settings, http_client=http_client)
    yield client
    await http_client.aclose()


@pytest.fixture
async def api(settings: Settings, catalog_client: ShopifyAdminClient):
    """API client wired to the fake Shopify."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_catalog_client] = lambda: catalog_client
    app.dependency_overrides[get_optional_catalog_client] = lambda: catalog_client
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
