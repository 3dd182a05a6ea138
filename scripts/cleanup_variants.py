#!/usr/bin/env python3
"""Expired variant cleanup job for cron.

Schedule:
- Run nightly (or hourly) from the platform's cron.

Behavior:
- List the host product's variants (one page, up to 250)
- Pick ephemeral variants (SKU prefix, e.g. "CUST-") at least TTL hours old
- Delete them unless CLEANUP_DRY_RUN=1; failures are reported per variant

Run (local / cron):
  python -m scripts.cleanup_variants

Optional env vars:
  CLEANUP_DRY_RUN=1        preview only (default 0 for the cron job)
  CLEANUP_TTL_HOURS=168    age threshold (same setting the API uses)
"""

import asyncio
import json
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sticker_backend.routes.ops import build_cleanup_response, parse_dry_run  # noqa: E402
from sticker_backend.services.shopify_client import RemoteError, ShopifyAdminClient  # noqa: E402
from sticker_backend.services.sweeper import sweep  # noqa: E402
from sticker_backend.settings import get_settings  # noqa: E402


async def main() -> int:
    settings = get_settings()
    missing = settings.missing_shopify_config()
    if missing:
        print(json.dumps({"ok": False, "error": f"Missing env: {', '.join(missing)}"}))
        return 1

    dry_run = parse_dry_run(os.getenv("CLEANUP_DRY_RUN", "0"))
    client = ShopifyAdminClient(settings)
    try:
        report = await sweep(
            client,
            settings.host_product_id,
            ttl_hours=settings.cleanup_ttl_hours,
            dry_run=dry_run,
            sku_marker=settings.ephemeral_sku_marker,
            concurrency=settings.shopify_max_concurrency,
        )
    except RemoteError as e:
        print(json.dumps({"ok": False, "error": e.message, "details": e.details}, default=str))
        return 1
    finally:
        await client.close()

    # Final output for cron logs (single JSON blob)
    print(build_cleanup_response(report).model_dump_json(exclude_none=True))
    return 0 if report.failed_count == 0 else 2


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
