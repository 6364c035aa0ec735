from pydantic import BaseModel, Field
from typing import List


class CartLine(BaseModel):
    """One user's chosen quantity of one item, keyed by item id"""
    item_id: str
    name: str
    quantity: int = Field(..., gt=0)
    price: float = Field(0.0, ge=0)

    @property
    def subtotal(self) -> float:
        return self.quantity * self.price


class SelectedItem(BaseModel):
    """Snapshot handed to the confirmation step"""
    id: str
    name: str
    price: float
    quantity: int
    subtotal: float


class CartSummary(BaseModel):
    lines: List[CartLine] = []
    total: float = 0.0
    item_count: int = 0
    violations: List[str] = []
    can_checkout: bool = False


class AddToCartRequest(BaseModel):
    item_id: str = Field(..., min_length=1, max_length=200)
    name: str = Field(..., min_length=1, max_length=300)
    price: float = Field(0.0, ge=0)


class UpdateCartQuantityRequest(BaseModel):
    quantity: int
