"""Schemas for the cleanup endpoint (/ops/cleanup)."""

from pydantic import BaseModel


class CleanupCandidate(BaseModel):
    """Ephemeral variant old enough to be deleted."""

    id: int
    sku: str
    title: str | None = None
    created_at: str
    age_hours: int


class CleanupResult(BaseModel):
    """Outcome of one deletion."""

    id: int
    sku: str | None = None
    title: str | None = None
    created_at: str | None = None
    age_hours: int | None = None
    deleted: bool
    error: str | None = None


class CleanupResponse(BaseModel):
    """Sweep summary.

    Dry runs carry `preview`; destructive runs carry `deleted`, `failed`
    and per-item `results`.
    """

    ok: bool = True
    dry_run: bool
    host_product_id: int
    ttl_hours: float
    total_variants: int
    candidates: int
    preview: list[CleanupCandidate] | None = None
    deleted: int | None = None
    failed: int | None = None
    results: list[CleanupResult] | None = None
