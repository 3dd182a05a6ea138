"""Shopify Admin REST client for the host product's variants.

Scope:
- Create a variant (product-scoped endpoint first, global endpoint on 404)
- Attach metafields to a variant (best-effort, per entry)
- List the variants of a product (single page, limit=250)
- Delete a variant (200/204 = success)
- Create a draft order (checkout)

Every response goes through `_parse_response`, which either returns the JSON
payload or raises `RemoteError` with a `RemoteErrorKind`. Callers branch on
`kind` and never look at raw responses or error strings.

Known limitation: variant listing reads one page only. Products with more
than 250 variants are not fully visible to the sweeper.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any, TypeVar

import httpx

from sticker_backend.settings import Settings

logger = logging.getLogger("uvicorn.error")

MAX_PAGE_SIZE = 250

# Substrings Shopify uses for uniqueness violations on variants / options
_DUPLICATE_MARKERS = ("already exists", "already been taken")

T = TypeVar("T")
R = TypeVar("R")


class RemoteErrorKind(str, Enum):
    """Normalized failure classes of an Admin API call."""

    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class RemoteError(RuntimeError):
    """A Shopify Admin API call failed.

    Attributes:
        kind: Normalized failure class.
        status_code: HTTP status, or None for network failures.
        details: Shopify's own `errors` payload when it sent one.
    """

    def __init__(
        self,
        kind: RemoteErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass
class Variant:
    """Product variant as returned by the Admin API."""

    id: int | None
    product_id: int | None = None
    sku: str | None = None
    price: str | None = None
    title: str | None = None
    option1: str | None = None
    created_at: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Variant:
        variant_id = data.get("id")
        product_id = data.get("product_id")
        return cls(
            id=variant_id if isinstance(variant_id, int) and not isinstance(variant_id, bool) else None,
            product_id=product_id if isinstance(product_id, int) else None,
            sku=data.get("sku") if isinstance(data.get("sku"), str) else None,
            price=str(data["price"]) if data.get("price") is not None else None,
            title=data.get("title"),
            option1=data.get("option1"),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class MetafieldEntry:
    namespace: str
    key: str
    type: str
    value: str

    def to_payload(self) -> dict[str, str]:
        return {"namespace": self.namespace, "key": self.key, "type": self.type, "value": self.value}


@dataclass
class MetafieldOutcome:
    key: str
    ok: bool
    error: str | None = None


def flatten_errors(errors: Any) -> list[str]:
    """Flatten Shopify's `errors` field (string, list or object) into messages.

    Examples:
        "Not Found" -> ["Not Found"]
        {"base": ["The variant 'Red' already exists."]} -> ["The variant 'Red' already exists."]
    """
    if errors is None:
        return []
    if isinstance(errors, str):
        return [errors]
    if isinstance(errors, list):
        out: list[str] = []
        for item in errors:
            out.extend(flatten_errors(item))
        return out
    if isinstance(errors, dict):
        out = []
        for field, value in errors.items():
            for msg in flatten_errors(value):
                out.append(msg if field == "base" else f"{field}: {msg}")
        return out
    return [str(errors)]


def classify_status(status_code: int, messages: Iterable[str]) -> RemoteErrorKind:
    """Map a non-success status plus error messages to a `RemoteErrorKind`."""
    if status_code == 404:
        return RemoteErrorKind.NOT_FOUND
    if status_code in (400, 422):
        lowered = " ".join(messages).lower()
        if any(marker in lowered for marker in _DUPLICATE_MARKERS):
            return RemoteErrorKind.DUPLICATE
        return RemoteErrorKind.VALIDATION
    return RemoteErrorKind.UNKNOWN


def _parse_response(
    response: httpx.Response,
    context: str,
    *,
    ok_statuses: Sequence[int] | None = None,
    expect_body: bool = True,
) -> dict[str, Any]:
    """Return the JSON payload of a successful response or raise `RemoteError`.

    Args:
        response: Raw HTTP response.
        context: Operation name used in error messages and logs.
        ok_statuses: Exact statuses that count as success (default: any 2xx).
        expect_body: If False, a successful response may have an empty body.
    """
    status = response.status_code
    text = response.text
    ok = status in ok_statuses if ok_statuses is not None else 200 <= status < 300

    if ok:
        if not text.strip():
            if not expect_body:
                return {}
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: empty response body ({status})",
                status_code=status,
            )
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            if not expect_body:
                return {}
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: invalid JSON ({status}): {text[:200]}",
                status_code=status,
            ) from None
        if not isinstance(data, dict):
            if not expect_body:
                return {}
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: unexpected response shape ({status})",
                status_code=status,
            )
        return data

    details: Any = None
    try:
        data = json.loads(text) if text.strip() else None
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and "errors" in data:
        details = data["errors"]
    elif data is not None:
        details = data

    messages = flatten_errors(details)
    kind = classify_status(status, messages)
    summary = "; ".join(messages) if messages else (text[:200] or response.reason_phrase)
    logger.warning(f"Shopify {context} failed: status={status} kind={kind.value} errors={summary}")
    raise RemoteError(
        kind,
        f"{context} failed ({status}): {summary}",
        status_code=status,
        details=details,
    )


async def gather_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = 1,
) -> list[R]:
    """Run `worker` over `items` with at most `limit` calls in flight.

    Results keep the order of `items`. Workers are expected to capture their
    own failures; limit=1 issues the calls one after another.
    """
    sem = asyncio.Semaphore(max(1, limit))

    async def _run(item: T) -> R:
        async with sem:
            return await worker(item)

    return list(await asyncio.gather(*(_run(item) for item in items)))


class ShopifyAdminClient:
    """Client for the Shopify Admin REST endpoints used by the sticker flow."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        """Initialize client from an explicit settings instance.

        Args:
            settings: Store domain, access token, API version and limits.
            http_client: Optional pre-built client (tests inject a MockTransport).
        """
        self.settings = settings
        self.base_url = settings.shopify_admin_base_url
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.shopify_timeout_seconds)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.settings.shopify_admin_access_token,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        context: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        ok_statuses: Sequence[int] | None = None,
        expect_body: bool = True,
    ) -> dict[str, Any]:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(
                method,
                url,
                json=json_body,
                params=params,
                headers=self._headers(),
                timeout=self.settings.shopify_timeout_seconds,
            )
        except httpx.RequestError as e:
            # covers undecodable bodies and redirect loops, not only network errors
            logger.warning(f"Shopify {context} transport error: {e!r}")
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: {type(e).__name__}: {e}",
            ) from e
        return _parse_response(response, context, ok_statuses=ok_statuses, expect_body=expect_body)

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def create_variant(self, product_id: int, fields: dict[str, Any]) -> Variant:
        """Create a variant on `product_id`.

        Tries `POST /products/{id}/variants.json` first. If that endpoint
        answers with a not-found error, retries once on the global
        `POST /variants.json` with `product_id` inline. Any other failure is
        raised as-is.
        """
        try:
            data = await self._request(
                "POST",
                f"/products/{product_id}/variants.json",
                "createVariant",
                json_body={"variant": fields},
            )
        except RemoteError as e:
            if e.kind is not RemoteErrorKind.NOT_FOUND:
                raise
            logger.info(f"Product-scoped variant create returned 404 for product={product_id}, trying global endpoint")
            data = await self._request(
                "POST",
                "/variants.json",
                "createVariant(global)",
                json_body={"variant": {**fields, "product_id": product_id}},
            )
        return self._variant_from(data, "createVariant")

    async def attach_metadata(
        self,
        variant_id: int,
        entries: Sequence[MetafieldEntry],
    ) -> list[MetafieldOutcome]:
        """Attach metafields to a variant, one request per entry.

        Best-effort: a failing entry is logged and reported in the returned
        outcomes, the remaining entries are still sent.
        """

        async def _attach(entry: MetafieldEntry) -> MetafieldOutcome:
            try:
                await self._request(
                    "POST",
                    f"/variants/{variant_id}/metafields.json",
                    f"createMetafield[{entry.key}]",
                    json_body={"metafield": entry.to_payload()},
                )
            except RemoteError as e:
                logger.warning(f"Metafield {entry.namespace}.{entry.key} skipped for variant={variant_id}: {e}")
                return MetafieldOutcome(key=entry.key, ok=False, error=str(e))
            return MetafieldOutcome(key=entry.key, ok=True)

        return await gather_bounded(list(entries), _attach, self.settings.shopify_max_concurrency)

    async def list_variants(self, product_id: int) -> list[Variant]:
        """List the variants of a product (first page only)."""
        data = await self._request(
            "GET",
            f"/products/{product_id}/variants.json",
            "listVariants",
            params={"limit": MAX_PAGE_SIZE},
        )
        raw = data.get("variants")
        if not isinstance(raw, list):
            return []
        return [Variant.from_payload(v) for v in raw if isinstance(v, dict)]

    async def delete_variant(self, variant_id: int) -> None:
        """Delete a variant. Shopify answers 200 with `{}` or 204 with no body."""
        await self._request(
            "DELETE",
            f"/variants/{variant_id}.json",
            "deleteVariant",
            ok_statuses=(200, 204),
            expect_body=False,
        )

    # ------------------------------------------------------------------
    # Draft orders
    # ------------------------------------------------------------------

    async def create_draft_order(self, line_items: list[dict[str, Any]]) -> dict[str, Any]:
        """Create a draft order and return the `draft_order` object."""
        data = await self._request(
            "POST",
            "/draft_orders.json",
            "createDraftOrder",
            json_body={
                "draft_order": {
                    "line_items": line_items,
                    "use_customer_default_address": True,
                }
            },
        )
        draft_order = data.get("draft_order")
        if not isinstance(draft_order, dict):
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                "createDraftOrder: response has no draft_order",
                details=data,
            )
        return draft_order

    @staticmethod
    def _variant_from(data: dict[str, Any], context: str) -> Variant:
        payload = data.get("variant")
        if not isinstance(payload, dict):
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: response has no variant",
                details=data,
            )
        variant = Variant.from_payload(payload)
        if variant.id is None:
            raise RemoteError(
                RemoteErrorKind.TRANSPORT,
                f"{context}: variant has no id",
                details=data,
            )
        return variant
