"""
Cart Service

Per-user rental cart kept in sync with the live catalog:
- Lines are keyed by item id; the name is only for display
- Every mutation is checked against the availability calculator
- Rehydration re-resolves persisted lines and clamps them to current stock
- After each committed catalog reload the registry re-runs rehydration for
  every bound cart

Gating here is a UX hint. Stock is authoritative in the data service.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from ..config import settings
from ..schemas.cart import CartLine, CartSummary, SelectedItem
from ..schemas.item import Item
from ..utils.logging_config import get_logger
from ..utils.security import CurrentUser
from .availability import AvailabilityCalculator
from .cart_validator import CartValidator
from .catalog_service import CatalogService
from .local_state import (
    CART_KEY,
    CART_TOTAL_KEY,
    SELECTED_ITEMS_KEY,
    SELECTED_PACKAGE_KEY,
    LocalStateStore,
)
from .outcomes import ActionResult
from .verification import VerificationGate

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

OUT_OF_STOCK = "This item is currently out of stock."
EXCEEDS_INVENTORY = (
    "Your cart contains items that exceed available inventory. "
    "Please adjust your quantities before proceeding."
)


class CartStore:
    """One user's cart"""

    def __init__(
        self,
        user: Optional[CurrentUser],
        catalog: CatalogService,
        availability: AvailabilityCalculator,
        store: LocalStateStore,
        validator: Optional[CartValidator] = None,
    ):
        self.user = user
        self.catalog = catalog
        self.availability = availability
        self.store = store
        self.validator = validator or CartValidator(availability)
        self.lines: Dict[str, CartLine] = {}

    # ==================
    # Persistence
    # ==================

    def _persist(self):
        if self.user is None:
            return
        uid = self.user.uid

        if not self.lines:
            self.store.remove(uid, CART_KEY)
            self.store.remove(uid, SELECTED_ITEMS_KEY)
            self.store.remove(uid, CART_TOTAL_KEY)
            return

        snapshot = {
            line.item_id: {
                "itemId": line.item_id,
                "name": line.name,
                "quantity": line.quantity,
                "price": line.price,
            }
            for line in self.lines.values()
        }
        self.store.set_json(uid, CART_KEY, snapshot)
        self.store.set_json(uid, SELECTED_ITEMS_KEY, [s.model_dump() for s in self.selected_items()])
        self.store.set_json(uid, CART_TOTAL_KEY, self.total)

    def _stored_lines(self) -> List[CartLine]:
        """
        Persisted lines as written. Older snapshots were keyed by name, so the
        key is only used as a fallback display name.
        """
        raw = self.store.get_json(self.user.uid, CART_KEY, default={})
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed cart for {self.user.uid}")
            return []

        lines = []
        for key, entry in raw.items():
            if not isinstance(entry, dict) or not entry.get("itemId"):
                continue
            try:
                quantity = int(entry.get("quantity") or 0)
                price = float(entry.get("price") or 0)
            except (TypeError, ValueError):
                continue
            if quantity <= 0:
                continue
            lines.append(CartLine(
                item_id=str(entry["itemId"]),
                name=entry.get("name") or key,
                quantity=quantity,
                price=max(price, 0.0),
            ))
        return lines

    def rehydrate(self) -> List[str]:
        """
        Rebuild the cart from persisted state against the current catalog.
        Lines whose item vanished are dropped, the rest are clamped to the
        rentable quantity (dropped at zero). Returns a note per adjusted line.
        """
        if self.user is None:
            self.lines = {}
            return []

        stored = self._stored_lines()

        if self.catalog.degraded:
            # No catalog to check against; keep what the user had
            logger.warning(f"Catalog degraded, cart for {self.user.uid} kept unvalidated")
            self.lines = {line.item_id: line for line in stored}
            return []

        adjustments = []
        lines: Dict[str, CartLine] = {}
        for line in stored:
            if self.catalog.find(line.item_id) is None:
                adjustments.append(f'"{line.name}" was removed from your cart because it is no longer available.')
                continue
            max_qty = self.availability.get_max_quantity(line.item_id)
            quantity = min(line.quantity, max_qty)
            if quantity <= 0:
                adjustments.append(f'"{line.name}" was removed from your cart because it is out of stock.')
                continue
            if quantity < line.quantity:
                adjustments.append(f'"{line.name}" quantity reduced to {quantity}.')
            lines[line.item_id] = line.model_copy(update={"quantity": quantity})

        self.lines = lines
        if adjustments:
            logger.info(f"Cart for {self.user.uid} adjusted on rehydrate: {len(adjustments)} line(s)")
            self._persist()
        return adjustments

    # ==================
    # Mutations
    # ==================

    def add_to_cart(self, item_id: str, name: str, price: float = 0.0) -> ActionResult:
        if self.user is None:
            return ActionResult.login_required("Please log in to add items to your cart.")

        max_qty = self.availability.get_max_quantity(item_id)
        if max_qty == 0:
            return ActionResult.rejected(OUT_OF_STOCK)

        existing = self.lines.get(item_id)
        if existing is not None:
            quantity = existing.quantity + 1
            if quantity > max_qty:
                return ActionResult.rejected(f'Only {max_qty} units available for "{existing.name}".')
            self.lines[item_id] = existing.model_copy(update={"quantity": quantity})
        else:
            quantity = 1
            self.lines[item_id] = CartLine(item_id=item_id, name=name, quantity=1, price=max(price, 0.0))

        self._persist()
        structured_logger.cart_changed(self.user.uid, "add", item_id, quantity)
        return ActionResult.ok(f'"{self.lines[item_id].name}" added to cart.', data=self.summary())

    def update_cart_quantity(self, item_id: str, new_quantity: int) -> ActionResult:
        if self.user is None:
            return ActionResult.login_required("Please log in to modify your cart.")

        line = self.lines.get(item_id)
        if line is None:
            return ActionResult.rejected("That item is not in your cart.")

        if new_quantity <= 0:
            return self.remove_from_cart(item_id)

        max_qty = self.availability.get_max_quantity(item_id)
        if new_quantity > max_qty:
            return ActionResult.rejected(f'Only {max_qty} units available for "{line.name}".')

        self.lines[item_id] = line.model_copy(update={"quantity": new_quantity})
        self._persist()
        structured_logger.cart_changed(self.user.uid, "update", item_id, new_quantity)
        return ActionResult.ok(data=self.summary())

    def remove_from_cart(self, item_id: str) -> ActionResult:
        removed = self.lines.pop(item_id, None)
        if removed is not None:
            self._persist()
            if self.user is not None:
                structured_logger.cart_changed(self.user.uid, "remove", item_id, 0)
        return ActionResult.ok(data=self.summary())

    def clear_cart(self) -> ActionResult:
        self.lines = {}
        if self.user is not None:
            self.store.remove(self.user.uid, CART_KEY)
            self.store.remove(self.user.uid, SELECTED_ITEMS_KEY)
            self.store.remove(self.user.uid, CART_TOTAL_KEY)
            structured_logger.cart_changed(self.user.uid, "clear", "*", 0)
        return ActionResult.ok("Cart cleared.", data=self.summary())

    # ==================
    # Reads
    # ==================

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self.lines.values())

    def quantity_of(self, item_id: str) -> int:
        line = self.lines.get(item_id)
        return line.quantity if line else 0

    def selected_items(self) -> List[SelectedItem]:
        return [
            SelectedItem(
                id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                subtotal=line.subtotal,
            )
            for line in self.lines.values()
        ]

    def validate(self) -> List[str]:
        return self.validator.validate(self.lines.values())

    def summary(self) -> CartSummary:
        violations = self.validate()
        return CartSummary(
            lines=list(self.lines.values()),
            total=self.total,
            item_count=sum(line.quantity for line in self.lines.values()),
            violations=violations,
            can_checkout=bool(self.lines) and not violations,
        )

    # ==================
    # Checkout
    # ==================

    def checkout(self, gate: Optional[VerificationGate] = None) -> ActionResult:
        """Hand the cart to the scheduling step as the active selection"""
        if self.user is None:
            return ActionResult.login_required("Please log in to proceed with booking.")

        gate = gate or VerificationGate(self.user)
        verdict = gate.require()
        if not verdict.success:
            return verdict

        if not self.lines:
            return ActionResult.rejected("Your cart is empty.")

        violations = self.validate()
        if violations:
            return ActionResult.rejected(EXCEEDS_INVENTORY, data=violations)

        uid = self.user.uid
        self.store.set_json(uid, SELECTED_ITEMS_KEY, [s.model_dump() for s in self.selected_items()])
        self.store.set_json(uid, CART_TOTAL_KEY, self.total)
        self.store.remove(uid, SELECTED_PACKAGE_KEY)
        logger.info(f"Cart checkout for {uid}: {len(self.lines)} line(s), total {self.total}")
        return ActionResult.ok(redirect=settings.confirmation_path, data=self.summary())


class CartRegistry:
    """
    Keeps one CartStore per signed-in user and re-runs rehydration on every
    bound cart after the catalog commits a new snapshot.

    Bound carts are released on logout and, past max_carts, least recently
    used first. Saved state stays in the local state store, so a released
    cart is rebuilt on the user's next request.
    """

    def __init__(
        self,
        catalog: CatalogService,
        availability: AvailabilityCalculator,
        store: LocalStateStore,
        max_carts: Optional[int] = None,
    ):
        self.catalog = catalog
        self.availability = availability
        self.store = store
        self.validator = CartValidator(availability)
        self.max_carts = max_carts if max_carts is not None else settings.max_bound_carts
        self._carts: "OrderedDict[str, CartStore]" = OrderedDict()
        self._remove_listener = catalog.add_listener(self._on_catalog_changed)

    def get(self, user: Optional[CurrentUser]) -> CartStore:
        """Cart for this user. Anonymous callers get an empty, unsaved cart."""
        if user is None:
            return CartStore(None, self.catalog, self.availability, self.store, self.validator)

        cart = self._carts.get(user.uid)
        if cart is None:
            cart = CartStore(user, self.catalog, self.availability, self.store, self.validator)
            cart.rehydrate()
            self._carts[user.uid] = cart
            self._evict()
        else:
            # Verification status may change between requests
            cart.user = user
            self._carts.move_to_end(user.uid)
        return cart

    def _evict(self):
        while len(self._carts) > self.max_carts:
            uid, _ = self._carts.popitem(last=False)
            logger.debug(f"Released idle cart for {uid}")

    def forget(self, uid: str) -> bool:
        """Release a user's bound cart. Returns True if one was bound."""
        return self._carts.pop(uid, None) is not None

    def __contains__(self, uid: str) -> bool:
        return uid in self._carts

    def __len__(self) -> int:
        return len(self._carts)

    def _on_catalog_changed(self, items: List[Item]):
        for uid, cart in list(self._carts.items()):
            try:
                adjustments = cart.rehydrate()
            except Exception as e:
                logger.error(f"Cart re-validation failed for {uid}: {e}", exc_info=True)
                continue
            for note in adjustments:
                logger.info(f"Cart {uid}: {note}")

    def close(self):
        self._remove_listener()
        self._carts.clear()
