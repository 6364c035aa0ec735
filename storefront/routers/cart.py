import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..schemas.cart import AddToCartRequest, CartSummary, UpdateCartQuantityRequest
from ..schemas.common import ActionResponse
from ..services.cart_service import CartRegistry, CartStore
from ..services.outcomes import ActionResult
from ..services.verification import VerificationGate
from ..utils.dependencies import get_cart, get_cart_registry, get_gate, get_optional_user, to_response
from ..utils.security import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=CartSummary)
async def get_cart_summary(cart: CartStore = Depends(get_cart)):
    return cart.summary()


@router.post("/items", response_model=ActionResponse)
async def add_item(data: AddToCartRequest, cart: CartStore = Depends(get_cart)):
    return to_response(cart.add_to_cart(data.item_id, data.name, data.price))


@router.patch("/items/{item_id}", response_model=ActionResponse)
async def update_item_quantity(
    item_id: str,
    data: UpdateCartQuantityRequest,
    cart: CartStore = Depends(get_cart),
):
    return to_response(cart.update_cart_quantity(item_id, data.quantity))


@router.delete("/items/{item_id}", response_model=ActionResponse)
async def remove_item(item_id: str, cart: CartStore = Depends(get_cart)):
    return to_response(cart.remove_from_cart(item_id))


@router.delete("", response_model=ActionResponse)
async def clear_cart(cart: CartStore = Depends(get_cart)):
    return to_response(cart.clear_cart())


@router.get("/validate")
async def validate_cart(cart: CartStore = Depends(get_cart)):
    violations = cart.validate()
    return {"valid": not violations, "violations": violations}


@router.post("/checkout", response_model=ActionResponse)
async def checkout(
    cart: CartStore = Depends(get_cart),
    gate: VerificationGate = Depends(get_gate),
):
    return to_response(cart.checkout(gate))


@router.post("/logout", response_model=ActionResponse)
async def release_cart(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    registry: CartRegistry = Depends(get_cart_registry),
):
    """Release the signed-in user's in-memory cart. The saved cart is kept."""
    if user is not None and registry.forget(user.uid):
        logger.info(f"Released cart for {user.uid} on logout")
    return to_response(ActionResult.ok())
