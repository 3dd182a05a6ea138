"""Tests for the cron cleanup entry point output."""

import json

import httpx
import pytest

from conftest import HOST_PRODUCT_ID, FakeShopify
from scripts import cleanup_variants
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.settings import Settings


@pytest.fixture
def use_fake_shopify(monkeypatch: pytest.MonkeyPatch, settings: Settings, shopify: FakeShopify) -> None:
    def make_client(s: Settings) -> ShopifyAdminClient:
        return ShopifyAdminClient(s, http_client=httpx.AsyncClient(transport=httpx.MockTransport(shopify)))

    monkeypatch.setattr(cleanup_variants, "get_settings", lambda: settings)
    monkeypatch.setattr(cleanup_variants, "ShopifyAdminClient", make_client)


async def test_missing_config_prints_json(
    monkeypatch: pytest.MonkeyPatch, settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    unconfigured = settings.model_copy(update={"shopify_admin_access_token": ""})
    monkeypatch.setattr(cleanup_variants, "get_settings", lambda: unconfigured)

    assert await cleanup_variants.main() == 1

    output = json.loads(capsys.readouterr().out)
    assert output == {"ok": False, "error": "Missing env: SHOPIFY_ADMIN_ACCESS_TOKEN"}


async def test_listing_failure_prints_json(
    use_fake_shopify: None, shopify: FakeShopify, capsys: pytest.CaptureFixture[str]
) -> None:
    shopify.on("GET", f"/products/{HOST_PRODUCT_ID}/variants.json", 403, json_body={"errors": "Forbidden"})

    assert await cleanup_variants.main() == 1

    output = json.loads(capsys.readouterr().out)
    assert output["ok"] is False
    assert "Forbidden" in output["error"]


async def test_successful_sweep_prints_json(
    monkeypatch: pytest.MonkeyPatch, use_fake_shopify: None, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("CLEANUP_DRY_RUN", "1")

    assert await cleanup_variants.main() == 0

    output = json.loads(capsys.readouterr().out)
    assert output["ok"] is True
    assert output["dry_run"] is True
    assert output["candidates"] == 0
