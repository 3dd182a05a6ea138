"""Expiration sweeper for ephemeral variants.

Lists the host product's variants, picks the temporary ones older than the
TTL and (unless dry-run) deletes them one by one.

Safety rules:
- Only variants whose SKU starts with the ephemeral marker (e.g. "CUST-")
  are ever considered. The marker check runs before the age check and is
  an exact prefix match.
- Dry-run never issues a delete.
- A failed deletion is recorded and the sweep moves on.

Listing and deletion are not atomic: a variant purchased between the two
steps can still be deleted. Orders keep their own line-item copy, so this
is accepted.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging
import math
from typing import Any

from sticker_backend.services.shopify_client import (
    RemoteError,
    ShopifyAdminClient,
    Variant,
    gather_bounded,
)

logger = logging.getLogger("uvicorn.error")


@dataclass
class SweepCandidate:
    id: int
    sku: str
    title: str | None
    created_at: str
    age_hours: int


@dataclass
class DeletionOutcome:
    id: int
    sku: str | None
    deleted: bool
    error: str | None = None
    title: str | None = None
    created_at: str | None = None
    age_hours: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.error is None:
            data.pop("error")
        return data


@dataclass
class SweepReport:
    host_product_id: int
    ttl_hours: float
    dry_run: bool
    total_variants: int
    candidates: list[SweepCandidate] = field(default_factory=list)
    results: list[DeletionOutcome] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(1 for r in self.results if r.deleted)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.deleted)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a Shopify ISO-8601 timestamp; naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_ephemeral_sku(sku: object, sku_marker: str) -> bool:
    return isinstance(sku, str) and bool(sku_marker) and sku.startswith(sku_marker)


def classify_variants(
    variants: list[Variant],
    *,
    sku_marker: str,
    ttl_hours: float,
    now: datetime | None = None,
) -> list[SweepCandidate]:
    """Pick the ephemeral variants that are at least `ttl_hours` old.

    Args:
        variants: Variants of the host product.
        sku_marker: Ephemeral SKU prefix including the dash ("CUST-").
        ttl_hours: Age threshold; a variant exactly `ttl_hours` old qualifies.
        now: Reference time (defaults to current UTC time).

    Returns:
        Deletion candidates with their age in whole hours (floored).
    """
    now = now or datetime.now(timezone.utc)
    ttl_seconds = ttl_hours * 3600

    candidates: list[SweepCandidate] = []
    for variant in variants:
        if variant.id is None:
            continue
        # Marker first: non-ephemeral variants are never aged at all
        if not is_ephemeral_sku(variant.sku, sku_marker):
            continue
        created = parse_timestamp(variant.created_at)
        if created is None:
            logger.warning(f"Variant {variant.id} sku={variant.sku} has no usable created_at, skipping")
            continue
        age_seconds = (now - created).total_seconds()
        if age_seconds < ttl_seconds:
            continue
        candidates.append(
            SweepCandidate(
                id=variant.id,
                sku=variant.sku,
                title=variant.title,
                created_at=variant.created_at,
                age_hours=math.floor(age_seconds / 3600),
            )
        )
    return candidates


async def sweep(
    client: ShopifyAdminClient,
    host_product_id: int,
    *,
    ttl_hours: float,
    dry_run: bool,
    sku_marker: str,
    concurrency: int = 1,
    now: datetime | None = None,
) -> SweepReport:
    """Find expired ephemeral variants and delete them unless `dry_run`.

    Raises:
        RemoteError: The variant listing failed. Individual deletion failures
            are reported in `SweepReport.results` instead.
    """
    variants = await client.list_variants(host_product_id)
    candidates = classify_variants(variants, sku_marker=sku_marker, ttl_hours=ttl_hours, now=now)
    report = SweepReport(
        host_product_id=host_product_id,
        ttl_hours=ttl_hours,
        dry_run=dry_run,
        total_variants=len(variants),
        candidates=candidates,
    )

    logger.info(
        f"[sweep] product={host_product_id} ttl_hours={ttl_hours} dry_run={dry_run} "
        f"variants={len(variants)} candidates={len(candidates)}"
    )
    if dry_run or not candidates:
        return report

    async def _delete(candidate: SweepCandidate) -> DeletionOutcome:
        outcome = DeletionOutcome(
            id=candidate.id,
            sku=candidate.sku,
            deleted=True,
            title=candidate.title,
            created_at=candidate.created_at,
            age_hours=candidate.age_hours,
        )
        try:
            await client.delete_variant(candidate.id)
        except RemoteError as e:
            logger.warning(f"[sweep] delete failed variant={candidate.id} sku={candidate.sku}: {e}")
            outcome.deleted = False
            outcome.error = str(e)
        return outcome

    report.results = await gather_bounded(candidates, _delete, concurrency)
    logger.info(f"[sweep] done product={host_product_id} deleted={report.deleted_count} failed={report.failed_count}")
    return report


async def purge_ordered_variants(
    client: ShopifyAdminClient,
    line_items: list[dict[str, Any]],
    *,
    sku_marker: str,
    concurrency: int = 1,
) -> list[DeletionOutcome]:
    """Delete the ephemeral variants referenced by a placed order.

    Called from the orders/create webhook. Line items without the ephemeral
    SKU marker are left alone.
    """
    targets: dict[int, str] = {}
    for item in line_items:
        if not isinstance(item, dict):
            continue
        variant_id = item.get("variant_id")
        sku = item.get("sku")
        if not isinstance(variant_id, int) or isinstance(variant_id, bool):
            continue
        if not is_ephemeral_sku(sku, sku_marker):
            continue
        targets.setdefault(variant_id, sku)

    async def _delete(target: tuple[int, str]) -> DeletionOutcome:
        variant_id, sku = target
        try:
            await client.delete_variant(variant_id)
        except RemoteError as e:
            logger.warning(f"Delete after order failed variant={variant_id} sku={sku}: {e}")
            return DeletionOutcome(id=variant_id, sku=sku, deleted=False, error=str(e))
        return DeletionOutcome(id=variant_id, sku=sku, deleted=True)

    outcomes = await gather_bounded(list(targets.items()), _delete, concurrency)
    if outcomes:
        logger.info(f"Order cleanup removed {sum(1 for o in outcomes if o.deleted)}/{len(outcomes)} ephemeral variants")
    return outcomes
