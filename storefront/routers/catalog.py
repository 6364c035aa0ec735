from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional

from ..schemas.item import CatalogCollisionResponse, ItemAvailabilityResponse, ItemResponse
from ..services.availability import AvailabilityCalculator
from ..services.cart_service import CartStore
from ..services.catalog_service import CatalogService
from ..utils.dependencies import get_availability, get_cart, get_catalog

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


@router.get("/items", response_model=List[ItemResponse])
async def list_items(
    category: Optional[str] = Query(None, description="Filter by category"),
    catalog: CatalogService = Depends(get_catalog),
    availability: AvailabilityCalculator = Depends(get_availability),
    cart: CartStore = Depends(get_cart),
):
    """Merged catalog with rentable quantities and what the caller already holds"""
    items = catalog.items_by_category(category)
    return [
        ItemResponse(
            id=item.id,
            name=item.name,
            category=item.category,
            price=item.price,
            available_quantity=item.available_quantity,
            reserved_quantity=item.reserved_quantity,
            available_for_rent=availability.available_for_rent(item),
            source=item.source,
            in_cart=cart.quantity_of(item.id),
        )
        for item in items
    ]


@router.get("/categories", response_model=List[str])
async def list_categories(catalog: CatalogService = Depends(get_catalog)):
    return catalog.categories()


@router.get("/items/{item_id}/availability", response_model=ItemAvailabilityResponse)
async def item_availability(
    item_id: str,
    quantity: int = Query(1, ge=1),
    catalog: CatalogService = Depends(get_catalog),
    availability: AvailabilityCalculator = Depends(get_availability),
):
    if catalog.find(item_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return ItemAvailabilityResponse(
        item_id=item_id,
        max_quantity=availability.get_max_quantity(item_id),
        requested=quantity,
        is_available=availability.is_item_available(item_id, quantity),
    )


@router.get("/collisions", response_model=List[CatalogCollisionResponse])
async def list_collisions(catalog: CatalogService = Depends(get_catalog)):
    """Ids claimed by both catalogs on the last committed load"""
    return [
        CatalogCollisionResponse(
            item_id=c.item_id,
            kept_source=c.kept_source,
            dropped_source=c.dropped_source,
            kept_name=c.kept_name,
            dropped_name=c.dropped_name,
        )
        for c in catalog.collisions
    ]


@router.post("/reload")
async def reload_catalog(catalog: CatalogService = Depends(get_catalog)):
    items = await catalog.load_all_items()
    return {
        "item_count": len(items),
        "collisions": len(catalog.collisions),
        "degraded": catalog.degraded,
    }
