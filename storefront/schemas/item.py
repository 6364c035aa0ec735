import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ItemCategory(str, Enum):
    TRIPOD = "tripod"
    CAMERA = "camera"
    COMSET = "comset"
    SWITCHER = "switcher"
    AUDIO_MIXER = "audio-mixer"
    MONITOR = "monitor"
    VIDEO_TRANSMITTER = "video-transmitter"
    CAMERA_DOLLY = "camera-dolly"
    UNCATEGORIZED = "uncategorized"


class ItemSource(str, Enum):
    """Which catalog an item came from"""
    PREDEFINED = "predefined"    # system/rentalInventory
    INVENTORY = "inventory"      # user-managed inventory


def _non_negative_number(value: Any, cast=float):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        return cast(0)
    return number if number > 0 else cast(0)


def generate_item_id(index: int = 0) -> str:
    """Fallback id for records stored without one (epoch millis + position)"""
    return f"item-{int(time.time() * 1000)}-{index}"


class Item(BaseModel):
    """
    One rentable item, normalized from either catalog.

    Wire names from the data service are camelCase; both spellings are
    accepted on input.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = "Unnamed Item"
    category: str = ItemCategory.UNCATEGORIZED.value
    price: float = 0.0
    available_quantity: int = Field(default=0, alias="availableQuantity")
    reserved_quantity: int = Field(default=0, alias="reservedQuantity")
    total_quantity: int = Field(default=1, alias="totalQuantity")
    source: ItemSource = ItemSource.INVENTORY
    description: Optional[str] = None
    image: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def apply_defaults(cls, data: Any):
        """Fill the fields a stored record may be missing"""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if not data.get("id"):
            data["id"] = generate_item_id()
        data["id"] = str(data["id"])
        data["name"] = data.get("name") or "Unnamed Item"
        data["category"] = data.get("category") or ItemCategory.UNCATEGORIZED.value
        data["price"] = _non_negative_number(data.get("price") or 0)

        available = data.get("availableQuantity", data.get("available_quantity"))
        if not available:
            available = data.get("quantity") or 0
        data["availableQuantity"] = _non_negative_number(available, int)

        reserved = data.get("reservedQuantity", data.get("reserved_quantity"))
        data["reservedQuantity"] = _non_negative_number(reserved or 0, int)

        total = data.get("totalQuantity", data.get("total_quantity"))
        if not total:
            total = data.get("maxQuantity") or 1
        data["totalQuantity"] = _non_negative_number(total, int)

        for snake in ("available_quantity", "reserved_quantity", "total_quantity"):
            data.pop(snake, None)
        return data

    @property
    def available_for_rent(self) -> int:
        """available - reserved, floored at zero"""
        return max(0, self.available_quantity - self.reserved_quantity)


class ItemResponse(BaseModel):
    id: str
    name: str
    category: str
    price: float
    available_quantity: int
    reserved_quantity: int
    available_for_rent: int
    source: ItemSource
    in_cart: int = 0


class ItemAvailabilityResponse(BaseModel):
    item_id: str
    max_quantity: int
    requested: int = 1
    is_available: bool


class CatalogCollisionResponse(BaseModel):
    item_id: str
    kept_source: ItemSource
    dropped_source: ItemSource
    kept_name: str
    dropped_name: str
