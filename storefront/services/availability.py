import logging
from typing import Optional, Protocol

from ..schemas.item import Item

logger = logging.getLogger(__name__)


class ItemLookup(Protocol):
    def find(self, item_id: str) -> Optional[Item]:
        ...


class AvailabilityCalculator:
    """Rentable quantity per item: available minus reserved, never below zero."""

    def __init__(self, catalog: ItemLookup):
        self.catalog = catalog

    @staticmethod
    def available_for_rent(item: Item) -> int:
        return max(0, (item.available_quantity or 0) - (item.reserved_quantity or 0))

    def get_max_quantity(self, item_id: str) -> int:
        item = self.catalog.find(item_id)
        if item is None:
            logger.debug(f"Item not found: {item_id}")
            return 0
        return self.available_for_rent(item)

    def is_item_available(self, item_id: str, requested_qty: int = 1) -> bool:
        if self.catalog.find(item_id) is None:
            return False
        return requested_qty <= self.get_max_quantity(item_id)
