"""Storefront catalog reader over the datastore's PostgREST endpoint.

When the exposed schema is missing (PostgREST answers PGRST106), the reader
stops querying for a retry interval and serves empty pages instead of
hammering the datastore.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from ..errors import ServiceUnavailableError


logger = logging.getLogger("bazaar.catalog")

SCHEMA_RETRY_INTERVAL_SECONDS = 60.0
SCHEMA_MISSING_CODE = "PGRST106"


@dataclass(frozen=True)
class Available:
    pass


@dataclass(frozen=True)
class Unavailable:
    since: float


@dataclass(frozen=True)
class HalfOpen:
    started: float


SchemaState = Available | Unavailable | HalfOpen


class SchemaAvailability:
    """Half-open breaker: after the retry interval exactly one trial request goes out.

    Everyone else keeps being skipped until the trial reports back. A trial
    that never reports back is replaced after another retry interval.
    """

    def __init__(
        self,
        retry_interval: float = SCHEMA_RETRY_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._retry_interval = retry_interval
        self._clock = clock
        self._state: SchemaState = Available()
        self._lock = threading.Lock()

    @property
    def state(self) -> SchemaState:
        return self._state

    def should_skip(self) -> bool:
        """True unless the schema is available or this caller makes the trial request."""
        with self._lock:
            state = self._state
            if isinstance(state, Available):
                return False
            now = self._clock()
            started = state.since if isinstance(state, Unavailable) else state.started
            if now - started >= self._retry_interval:
                self._state = HalfOpen(started=now)
                logger.info("Catalog schema trial request started")
                return False
            return True

    def mark_unavailable(self) -> None:
        with self._lock:
            if isinstance(self._state, Available):
                logger.warning("Catalog schema unavailable; pausing queries")
            self._state = Unavailable(since=self._clock())

    def mark_available(self) -> None:
        with self._lock:
            if not isinstance(self._state, Available):
                logger.info("Catalog schema available again")
            self._state = Available()


@dataclass(frozen=True)
class ProductFilters:
    category_id: str | None = None
    vendor_id: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_rating: float | None = None
    in_stock: bool = False
    is_featured: bool = False
    search: str | None = None


@dataclass(frozen=True)
class CatalogPage:
    items: list[dict[str, Any]]
    available: bool = True


def is_schema_missing(response: httpx.Response) -> bool:
    try:
        payload = response.json()
    except ValueError:
        return False
    if not isinstance(payload, Mapping):
        return False
    message = str(payload.get("message") or "")
    return payload.get("code") == SCHEMA_MISSING_CODE or "schema must be one of" in message


def _sanitize_search(value: str) -> str:
    # PostgREST "or" filters use these as syntax
    return "".join(ch for ch in value if ch not in ",()*\\").strip()


def _normalize_images(product: dict[str, Any]) -> dict[str, Any]:
    images = product.get("images")
    if isinstance(images, list):
        return product
    product["images"] = [images] if images else []
    return product


class CatalogClient:
    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        availability: SchemaAvailability | None = None,
        schema: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._schema = schema
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self.availability = availability or SchemaAvailability()

    async def list_products(
        self,
        filters: ProductFilters | None = None,
        limit: int = 24,
        offset: int = 0,
    ) -> CatalogPage:
        if self.availability.should_skip():
            return CatalogPage(items=[], available=False)

        filters = filters or ProductFilters()
        params: list[tuple[str, str]] = [
            ("select", "*"),
            ("is_active", "eq.true"),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
            ("offset", str(offset)),
        ]
        if filters.category_id:
            params.append(("category_id", f"eq.{filters.category_id}"))
        if filters.vendor_id:
            params.append(("vendor_id", f"eq.{filters.vendor_id}"))
        if filters.min_price is not None:
            params.append(("price", f"gte.{filters.min_price}"))
        if filters.max_price is not None:
            params.append(("price", f"lte.{filters.max_price}"))
        if filters.min_rating is not None:
            params.append(("rating", f"gte.{filters.min_rating}"))
        if filters.in_stock:
            params.append(("stock_quantity", "gt.0"))
        if filters.is_featured:
            params.append(("is_featured", "eq.true"))
        if filters.search:
            term = _sanitize_search(filters.search)
            if term:
                params.append(("or", f"(name.ilike.*{term}*,description.ilike.*{term}*)"))

        rows = await self._select("products", params)
        if rows is None:
            return CatalogPage(items=[], available=False)

        items = [_normalize_images(dict(row)) for row in rows]
        if items:
            await self._attach_related(items)
        return CatalogPage(items=items)

    async def get_product(self, product_id: str) -> dict[str, Any] | None:
        if self.availability.should_skip():
            return None
        rows = await self._select(
            "products", [("select", "*"), ("id", f"eq.{product_id}"), ("limit", "1")]
        )
        if not rows:
            return None
        product = _normalize_images(dict(rows[0]))
        await self._attach_related([product])
        return product

    async def vendor_owner_id(self, vendor_id: str) -> str | None:
        """Profile id of the account that owns the vendor, if any."""
        rows = await self._select(
            "vendors", [("select", "profile_id"), ("id", f"eq.{vendor_id}"), ("limit", "1")]
        )
        if not rows or not rows[0].get("profile_id"):
            return None
        return str(rows[0]["profile_id"])

    async def _attach_related(self, products: list[dict[str, Any]]) -> None:
        for key, table in (("vendor", "vendors"), ("category", "categories")):
            ids = sorted({str(p[f"{key}_id"]) for p in products if p.get(f"{key}_id")})
            related: dict[str, dict[str, Any]] = {}
            if ids:
                rows = await self._select(
                    table, [("select", "id,name,slug"), ("id", f"in.({','.join(ids)})")]
                )
                related = {str(row["id"]): row for row in rows or []}
            for product in products:
                product[key] = related.get(str(product.get(f"{key}_id")))

    async def _select(
        self, table: str, params: list[tuple[str, str]]
    ) -> list[dict[str, Any]] | None:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._anon_key}",
            "Accept": "application/json",
        }
        if self._schema:
            headers["Accept-Profile"] = self._schema
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(f"/rest/v1/{table}", params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Catalog request failed table=%s: %s", table, exc)
            raise ServiceUnavailableError("Catalog service unavailable") from exc

        if response.status_code >= 400:
            if is_schema_missing(response):
                self.availability.mark_unavailable()
                return None
            logger.error(
                "Catalog query failed table=%s status=%s body=%s",
                table,
                response.status_code,
                response.text[:200],
            )
            raise ServiceUnavailableError("Catalog service unavailable")

        self.availability.mark_available()
        payload = response.json()
        return payload if isinstance(payload, list) else []
