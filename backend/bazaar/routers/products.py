import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, Query

from ..auth.principal import AuthenticatedUser
from ..config import settings
from ..dependencies import get_current_user_optional
from ..errors import NotFoundError
from ..services.catalog import CatalogClient, ProductFilters

logger = logging.getLogger("bazaar.catalog")

router = APIRouter(prefix="/v1/products", tags=["products"])


@lru_cache(maxsize=1)
def get_catalog_client() -> CatalogClient:
    return CatalogClient(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        timeout_seconds=settings.identity_timeout_seconds,
    )


@router.get("")
async def list_products(
    category_id: str | None = Query(None, alias="categoryId"),
    vendor_id: str | None = Query(None, alias="vendorId"),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    min_rating: float | None = Query(None, alias="minRating", ge=0, le=5),
    in_stock: bool = Query(False, alias="inStock"),
    featured: bool = Query(False),
    search: str | None = Query(None, max_length=100),
    limit: int = Query(24, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _user: AuthenticatedUser | None = Depends(get_current_user_optional),
    catalog: CatalogClient = Depends(get_catalog_client),
) -> dict[str, object]:
    filters = ProductFilters(
        category_id=category_id,
        vendor_id=vendor_id,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        in_stock=in_stock,
        is_featured=featured,
        search=search,
    )
    page = await catalog.list_products(filters, limit=limit, offset=offset)
    return {
        "success": True,
        "data": page.items,
        "available": page.available,
        "limit": limit,
        "offset": offset,
    }


async def _can_see_inactive(
    catalog: CatalogClient, product: dict[str, object], user: AuthenticatedUser | None
) -> bool:
    if user is None:
        return False
    if user.is_admin:
        return True
    vendor_id = product.get("vendor_id")
    if not vendor_id:
        return False
    return await catalog.vendor_owner_id(str(vendor_id)) == user.id


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    user: AuthenticatedUser | None = Depends(get_current_user_optional),
    catalog: CatalogClient = Depends(get_catalog_client),
) -> dict[str, object]:
    product = await catalog.get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    # Inactive listings stay visible to their vendor and to admins only
    if product.get("is_active") is False and not await _can_see_inactive(catalog, product, user):
        logger.info("Hidden inactive product product_id=%s", product_id)
        raise NotFoundError("Product not found")
    return {"success": True, "data": product}
