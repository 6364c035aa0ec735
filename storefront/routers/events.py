"""
Inventory change notifications from the admin side.

Stock edits and processed damage reports arrive here and are published on
the event bus; the catalog reloads in response.
"""

from fastapi import APIRouter, Body, Depends
from typing import Optional

from ..services.events import InventoryEvent, InventoryEventBus
from ..utils.dependencies import get_event_bus

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.post("/inventory-updated")
async def inventory_updated(
    detail: Optional[dict] = Body(None),
    events: InventoryEventBus = Depends(get_event_bus),
):
    delivered = await events.publish(InventoryEvent.INVENTORY_UPDATED, detail)
    return {"event": InventoryEvent.INVENTORY_UPDATED.value, "delivered": delivered}


@router.post("/damage-report-processed")
async def damage_report_processed(
    detail: Optional[dict] = Body(None),
    events: InventoryEventBus = Depends(get_event_bus),
):
    delivered = await events.publish(InventoryEvent.DAMAGE_REPORT_PROCESSED, detail)
    return {"event": InventoryEvent.DAMAGE_REPORT_PROCESSED.value, "delivered": delivered}
