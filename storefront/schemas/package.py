from pydantic import BaseModel, ConfigDict, Field
from typing import List


class PackageItem(BaseModel):
    id: str
    name: str
    quantity: int = Field(1, gt=0)


class Package(BaseModel):
    """Fixed bundle sold as one priced unit"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    price: float
    display_items: List[str] = Field(default_factory=list, alias="displayItems")
    items: List[PackageItem]


class PackageAvailability(BaseModel):
    is_available: bool
    unavailable_items: List[PackageItem] = []


class PackageResponse(BaseModel):
    package: Package
    availability: PackageAvailability
    selected: bool = False
