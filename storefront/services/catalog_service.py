"""
Catalog Service

Builds the one item list the storefront rents from:
- Reads the predefined catalog and the managed inventory
  (falling back to the inventoryItems collection when the primary is empty)
- Normalizes every record (defaults for missing fields)
- Merges with a fixed precedence: predefined wins an id collision,
  and every collision is reported
- Discards results of superseded loads (load tokens)
- Reloads on inventory events and subscription callbacks, then notifies
  listeners so carts re-validate against the new snapshot
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import settings
from ..schemas.item import Item, ItemSource, generate_item_id
from ..utils.logging_config import get_logger
from .data_service_client import DataServiceClient, FetchResult
from .events import InventoryEvent, InventoryEventBus

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

CatalogListener = Callable[[List[Item]], None]


@dataclass
class CatalogCollision:
    """Two records claiming the same item id"""
    item_id: str
    kept_source: ItemSource
    dropped_source: ItemSource
    kept_name: str
    dropped_name: str


@dataclass
class SourceLoad:
    """Raw records from one source plus whether the read worked"""
    records: List[Dict[str, Any]]
    ok: bool


def normalize_records(records: List[Dict[str, Any]], source: ItemSource) -> List[Item]:
    """Turn raw records into Items, skipping anything that is not a mapping"""
    items = []
    for index, raw in enumerate(records):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed {source.value} record at {index}")
            continue
        data = dict(raw)
        if not data.get("id"):
            data["id"] = generate_item_id(index)
        data["source"] = source
        items.append(Item.model_validate(data))
    return items


def merge_catalogs(
    predefined: List[Item],
    inventory: List[Item]
) -> Tuple[List[Item], List[CatalogCollision]]:
    """
    Concatenate the two catalogs keeping the first record per id.
    Predefined items come first, so they win ties.
    """
    merged: Dict[str, Item] = {}
    collisions: List[CatalogCollision] = []

    for item in [*predefined, *inventory]:
        existing = merged.get(item.id)
        if existing is None:
            merged[item.id] = item
            continue
        collisions.append(CatalogCollision(
            item_id=item.id,
            kept_source=existing.source,
            dropped_source=item.source,
            kept_name=existing.name,
            dropped_name=item.name,
        ))

    return list(merged.values()), collisions


class CatalogService:
    """
    Owns the current catalog snapshot.

    Every load gets a token; only the latest token may commit, so a slow
    load cannot clobber a newer one.
    """

    def __init__(
        self,
        client: DataServiceClient,
        events: Optional[InventoryEventBus] = None,
        damage_settle_seconds: Optional[float] = None,
    ):
        self.client = client
        self.events = events
        self.damage_settle_seconds = (
            damage_settle_seconds if damage_settle_seconds is not None
            else settings.damage_settle_seconds
        )
        self.items: List[Item] = []
        self.collisions: List[CatalogCollision] = []
        self.loaded = False
        self.degraded = False
        self._latest_token = 0
        self._index: Dict[str, Item] = {}
        self._listeners: List[CatalogListener] = []
        self._unsubscribers: List[Callable[[], None]] = []
        self._pending: set = set()

    # ==================
    # Loading
    # ==================

    async def _read_predefined(self) -> SourceLoad:
        try:
            result = await self.client.get_rental_items()
            if result.success:
                logger.info(f"Loaded {len(result.items)} predefined rental items")
                return SourceLoad(result.items, True)
            logger.info(f"No predefined rental items: {result.error}")
            return SourceLoad([], False)
        except Exception as e:
            logger.error(f"Error loading predefined rental items: {e}")
            return SourceLoad([], False)

    async def _read_inventory(self) -> SourceLoad:
        try:
            result = await self.client.get_inventory_items()
        except Exception as e:
            # Missing document or failed read: same as an unsuccessful result
            logger.warning(f"Current inventory unavailable: {e}")
            result = FetchResult(success=False, error=str(e))

        if result.success and result.items:
            logger.info(f"Loaded {len(result.items)} managed inventory items")
            return SourceLoad(result.items, True)

        logger.info("No items in current inventory, trying inventoryItems collection")
        try:
            fallback = await self.client.get_all_inventory_items()
        except Exception as e:
            logger.error(f"Error loading inventoryItems collection: {e}")
            return SourceLoad([], result.success)
        if fallback.success:
            return SourceLoad(fallback.items, True)
        return SourceLoad([], result.success)

    async def load_all_items(self) -> List[Item]:
        """
        Read both sources, normalize, merge and commit if still current.
        Returns the committed snapshot.
        """
        self._latest_token += 1
        token = self._latest_token
        start = time.time()

        predefined_load = await self._read_predefined()
        inventory_load = await self._read_inventory()

        predefined = normalize_records(predefined_load.records, ItemSource.PREDEFINED)
        inventory = normalize_records(inventory_load.records, ItemSource.INVENTORY)
        items, collisions = merge_catalogs(predefined, inventory)

        if token != self._latest_token:
            logger.info(f"Discarding stale catalog load {token} (latest is {self._latest_token})")
            return self.items

        for collision in collisions:
            logger.warning(
                f"Catalog id collision on {collision.item_id}: kept {collision.kept_source.value} "
                f"'{collision.kept_name}', dropped {collision.dropped_source.value} '{collision.dropped_name}'"
            )

        self._commit(items, collisions, degraded=not (predefined_load.ok or inventory_load.ok))
        structured_logger.catalog_loaded(
            token, len(items), len(collisions),
            duration_ms=round((time.time() - start) * 1000, 2)
        )
        return self.items

    def _commit(self, items: List[Item], collisions: List[CatalogCollision], degraded: bool):
        self.items = items
        self.collisions = collisions
        self._index = {item.id: item for item in items}
        self.loaded = True
        self.degraded = degraded
        self._notify()

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self.items)
            except Exception as e:
                logger.error(f"Catalog listener failed: {e}", exc_info=True)

    async def ensure_loaded(self) -> List[Item]:
        if not self.loaded:
            return await self.load_all_items()
        return self.items

    # ==================
    # Listeners & triggers
    # ==================

    def add_listener(self, listener: CatalogListener) -> Callable[[], None]:
        """Called synchronously after each committed load"""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def _on_inventory_updated(self, detail: Optional[dict] = None):
        logger.info("Inventory updated event received, reloading items")
        await self.load_all_items()

    def _on_damage_report(self, detail: Optional[dict] = None):
        logger.info(f"Damage report processed: {detail}")
        task = asyncio.get_running_loop().create_task(self._reload_after_settle())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _reload_after_settle(self):
        await asyncio.sleep(self.damage_settle_seconds)
        await self.load_all_items()

    async def _on_source_changed(self, items: List[Dict[str, Any]]):
        await self.load_all_items()

    def start(self, subscribe: bool = True):
        """
        Register for inventory events and, if asked, live subscriptions on
        both source collections. Subscriptions need a running event loop.
        """
        if self.events is not None:
            self._unsubscribers.append(
                self.events.subscribe(InventoryEvent.INVENTORY_UPDATED, self._on_inventory_updated)
            )
            self._unsubscribers.append(
                self.events.subscribe(InventoryEvent.DAMAGE_REPORT_PROCESSED, self._on_damage_report)
            )
        if subscribe:
            self._unsubscribers.append(self.client.subscribe_to_rental_items(self._on_source_changed))
            self._unsubscribers.append(self.client.subscribe_to_inventory(self._on_source_changed))

    def stop(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    # ==================
    # Lookups
    # ==================

    def find(self, item_id: str) -> Optional[Item]:
        return self._index.get(item_id)

    def categories(self) -> List[str]:
        seen: List[str] = []
        for item in self.items:
            if item.category not in seen:
                seen.append(item.category)
        return seen

    def items_by_category(self, category: Optional[str] = None) -> List[Item]:
        if not category:
            return list(self.items)
        return [item for item in self.items if item.category == category]

    def has_items_in_category(self, category: str) -> bool:
        return any(item.category == category for item in self.items)

    def available_items(self) -> List[Item]:
        """Items with at least one unit free to rent"""
        return [item for item in self.items if item.available_for_rent > 0]
