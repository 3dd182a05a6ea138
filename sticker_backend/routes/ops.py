"""Operations endpoints.

GET /ops/cleanup - preview or delete expired ephemeral variants.

Query params:
  dry_run:   1|0 (default 1). Only 0/false/no deletes anything.
  ttl_hours: age threshold in hours (default CLEANUP_TTL_HOURS)

Intended for a scheduler (or a human) hitting the URL; the cron script
`scripts.cleanup_variants` runs the same sweep without HTTP.
"""

from fastapi import APIRouter, Depends, Query

from sticker_backend.routes.deps import get_catalog_client, require_host_product
from sticker_backend.schemas import CleanupCandidate, CleanupResponse, CleanupResult, ErrorResponse
from sticker_backend.services.shopify_client import ShopifyAdminClient
from sticker_backend.services.sweeper import SweepReport, sweep
from sticker_backend.settings import Settings, get_settings

router = APIRouter()

DESTRUCTIVE_VALUES = {"0", "false", "no"}


def parse_dry_run(value: str | None) -> bool:
    """Everything except an explicit 0/false/no is a dry run."""
    if value is None:
        return True
    return value.strip().lower() not in DESTRUCTIVE_VALUES


def build_cleanup_response(report: SweepReport) -> CleanupResponse:
    response = CleanupResponse(
        dry_run=report.dry_run,
        host_product_id=report.host_product_id,
        ttl_hours=report.ttl_hours,
        total_variants=report.total_variants,
        candidates=len(report.candidates),
    )
    if report.dry_run:
        response.preview = [CleanupCandidate(**vars(c)) for c in report.candidates]
    else:
        response.deleted = report.deleted_count
        response.failed = report.failed_count
        response.results = [CleanupResult(**r.to_dict()) for r in report.results]
    return response


@router.get(
    "/cleanup",
    response_model=CleanupResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
)
async def cleanup_expired_variants(
    dry_run: str | None = Query(default="1", description="1 = preview only, 0 = delete"),
    ttl_hours: float | None = Query(default=None, gt=0, description="Age threshold in hours"),
    settings: Settings = Depends(get_settings),
    host_product_id: int = Depends(require_host_product),
    client: ShopifyAdminClient = Depends(get_catalog_client),
) -> CleanupResponse:
    """Sweep the host product for expired temporary variants."""
    report = await sweep(
        client,
        host_product_id,
        ttl_hours=ttl_hours or settings.cleanup_ttl_hours,
        dry_run=parse_dry_run(dry_run),
        sku_marker=settings.ephemeral_sku_marker,
        concurrency=settings.shopify_max_concurrency,
    )
    return build_cleanup_response(report)
