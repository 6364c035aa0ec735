"""
Tests for the cart store

These tests verify:
- Sign-in gating and stock limits on every mutation
- Persistence of the cart, selected items and total
- Rehydration against the current catalog
- Registry re-validation after catalog reloads
- Checkout hand-off
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from storefront.services.cart_service import CartRegistry, CartStore, EXCEEDS_INVENTORY, OUT_OF_STOCK
from storefront.services.data_service_client import DataServiceError, FetchResult
from storefront.services.local_state import (
    CART_KEY,
    CART_TOTAL_KEY,
    SELECTED_ITEMS_KEY,
    SELECTED_PACKAGE_KEY,
)
from storefront.services.verification import VerificationGate
from storefront.utils.security import CurrentUser


@pytest.fixture
def cart(verified_user, catalog, availability, local_state):
    store = CartStore(verified_user, catalog, availability, local_state)
    store.rehydrate()
    return store


class TestAddToCart:
    def test_requires_sign_in(self, catalog, availability, local_state):
        cart = CartStore(None, catalog, availability, local_state)

        result = cart.add_to_cart("pmw-200", "PMW-200", 3500)

        assert result.success is False
        assert result.unauthenticated is True
        assert result.redirect == "/login-register"
        assert cart.lines == {}

    def test_out_of_stock_is_rejected(self, cart):
        result = cart.add_to_cart("atem-monitor", "monitor ATEM156-CO", 1200)
        assert result.success is False
        assert result.message == OUT_OF_STOCK
        assert cart.lines == {}

    def test_unknown_item_is_out_of_stock(self, cart):
        result = cart.add_to_cart("no-such-item", "Nothing", 10)
        assert result.message == OUT_OF_STOCK

    def test_third_add_over_limit_is_rejected(self, cart):
        """pmw-200 has 3 available and 1 reserved, so only two can be rented"""
        assert cart.add_to_cart("pmw-200", "PMW-200", 3500).success
        assert cart.add_to_cart("pmw-200", "PMW-200", 3500).success

        result = cart.add_to_cart("pmw-200", "PMW-200", 3500)

        assert result.success is False
        assert result.message == 'Only 2 units available for "PMW-200".'
        assert cart.lines["pmw-200"].quantity == 2

    def test_lines_are_keyed_by_id_not_name(self, cart):
        cart.add_to_cart("sachtler-tripod", "Tripod", 800)
        cart.add_to_cart("cartoni-tripod", "Tripod", 900)
        assert set(cart.lines) == {"sachtler-tripod", "cartoni-tripod"}


class TestUpdateAndRemove:
    def test_update_requires_sign_in(self, catalog, availability, local_state):
        cart = CartStore(None, catalog, availability, local_state)
        result = cart.update_cart_quantity("pmw-200", 1)
        assert result.unauthenticated is True
        assert result.message == "Please log in to modify your cart."

    def test_update_sets_quantity(self, cart):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        result = cart.update_cart_quantity("pmw-200", 2)
        assert result.success is True
        assert cart.lines["pmw-200"].quantity == 2

    def test_update_over_limit_is_rejected(self, cart):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        result = cart.update_cart_quantity("pmw-200", 3)
        assert result.success is False
        assert result.message == 'Only 2 units available for "PMW-200".'
        assert cart.lines["pmw-200"].quantity == 1

    def test_update_to_zero_removes_line(self, cart):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.update_cart_quantity("pmw-200", 0)
        assert "pmw-200" not in cart.lines

    def test_update_unknown_line(self, cart):
        result = cart.update_cart_quantity("pmw-200", 1)
        assert result.success is False
        assert cart.lines == {}

    def test_remove_is_unconditional(self, cart):
        cart.add_to_cart("wheels-slider", "Wheels Slider Tripod", 500)
        assert cart.remove_from_cart("wheels-slider").success
        assert cart.remove_from_cart("wheels-slider").success
        assert cart.lines == {}


class TestPersistence:
    def test_mutation_persists_cart_selected_items_and_total(self, cart, local_state, verified_user):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.add_to_cart("wheels-slider", "Wheels Slider Tripod", 500)

        uid = verified_user.uid
        saved = local_state.get_json(uid, CART_KEY)
        assert saved["pmw-200"] == {"itemId": "pmw-200", "name": "PMW-200", "quantity": 2, "price": 3500.0}
        assert local_state.get_json(uid, CART_TOTAL_KEY) == 7500.0

        selected = local_state.get_json(uid, SELECTED_ITEMS_KEY)
        assert selected[0] == {
            "id": "pmw-200", "name": "PMW-200", "price": 3500.0, "quantity": 2, "subtotal": 7000.0
        }

    def test_emptied_cart_removes_selected_items(self, cart, local_state, verified_user):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.remove_from_cart("pmw-200")
        assert local_state.has(verified_user.uid, SELECTED_ITEMS_KEY) is False
        assert local_state.has(verified_user.uid, CART_KEY) is False

    def test_clear_cart_removes_persisted_state(self, cart, local_state, verified_user):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        result = cart.clear_cart()
        assert result.success is True
        assert cart.lines == {}
        assert local_state.keys_for(verified_user.uid) == []

    def test_anonymous_cart_is_never_saved(self, catalog, availability, local_state):
        cart = CartStore(None, catalog, availability, local_state)
        cart.remove_from_cart("pmw-200")
        assert local_state.keys_for("") == []

    def test_carts_are_isolated_per_user(self, catalog, availability, local_state, verified_user, unverified_user):
        first = CartStore(verified_user, catalog, availability, local_state)
        second = CartStore(unverified_user, catalog, availability, local_state)

        first.add_to_cart("pmw-200", "PMW-200", 3500)
        second.rehydrate()

        assert second.lines == {}


class TestRehydrate:
    def test_round_trip_restores_lines(self, cart, catalog, availability, local_state, verified_user):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.add_to_cart("sachtler-tripod", "Sachtler", 800)

        restored = CartStore(verified_user, catalog, availability, local_state)
        adjustments = restored.rehydrate()

        assert adjustments == []
        assert {k: v.quantity for k, v in restored.lines.items()} == {"pmw-200": 1, "sachtler-tripod": 1}

    def test_clamps_to_current_stock(self, catalog, availability, local_state, verified_user):
        local_state.set_json(verified_user.uid, CART_KEY, {
            "pmw-200": {"itemId": "pmw-200", "name": "PMW-200", "quantity": 5, "price": 3500},
        })
        cart = CartStore(verified_user, catalog, availability, local_state)

        adjustments = cart.rehydrate()

        assert cart.lines["pmw-200"].quantity == 2
        assert adjustments == ['"PMW-200" quantity reduced to 2.']
        assert local_state.get_json(verified_user.uid, CART_KEY)["pmw-200"]["quantity"] == 2

    def test_drops_vanished_and_out_of_stock_lines(self, catalog, availability, local_state, verified_user):
        local_state.set_json(verified_user.uid, CART_KEY, {
            "ghost": {"itemId": "ghost", "name": "Ghost Lens", "quantity": 1, "price": 10},
            "atem-monitor": {"itemId": "atem-monitor", "name": "Monitor", "quantity": 1, "price": 10},
            "wheels-slider": {"itemId": "wheels-slider", "name": "Slider", "quantity": 1, "price": 500},
        })
        cart = CartStore(verified_user, catalog, availability, local_state)

        adjustments = cart.rehydrate()

        assert list(cart.lines) == ["wheels-slider"]
        assert len(adjustments) == 2

    def test_rehydrate_is_idempotent(self, catalog, availability, local_state, verified_user):
        local_state.set_json(verified_user.uid, CART_KEY, {
            "pmw-200": {"itemId": "pmw-200", "name": "PMW-200", "quantity": 9, "price": 3500},
        })
        cart = CartStore(verified_user, catalog, availability, local_state)
        cart.rehydrate()
        first = dict(cart.lines)

        assert cart.rehydrate() == []
        assert cart.lines == first

    def test_name_keyed_snapshot_is_read_by_item_id(self, catalog, availability, local_state, verified_user):
        local_state.set_json(verified_user.uid, CART_KEY, {
            "PMW-200": {"itemId": "pmw-200", "quantity": 1, "price": 3500},
        })
        cart = CartStore(verified_user, catalog, availability, local_state)
        cart.rehydrate()
        assert cart.lines["pmw-200"].name == "PMW-200"

    def test_corrupt_snapshot_is_dropped(self, catalog, availability, local_state, session_factory, verified_user):
        from storefront.models.local_state import LocalStateEntry

        db = session_factory()
        db.add(LocalStateEntry(owner_id=verified_user.uid, key=CART_KEY, value="{not json"))
        db.commit()
        db.close()

        cart = CartStore(verified_user, catalog, availability, local_state)
        cart.rehydrate()

        assert cart.lines == {}
        assert local_state.has(verified_user.uid, CART_KEY) is False

    def test_degraded_catalog_keeps_persisted_cart(self, availability, local_state, verified_user, catalog):
        local_state.set_json(verified_user.uid, CART_KEY, {
            "pmw-200": {"itemId": "pmw-200", "name": "PMW-200", "quantity": 5, "price": 3500},
        })
        catalog.degraded = True
        cart = CartStore(verified_user, catalog, availability, local_state)

        assert cart.rehydrate() == []
        assert cart.lines["pmw-200"].quantity == 5
        assert local_state.get_json(verified_user.uid, CART_KEY)["pmw-200"]["quantity"] == 5


class TestCartRegistry:
    def test_same_store_for_same_user(self, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state)
        assert registry.get(verified_user) is registry.get(verified_user)
        assert len(registry) == 1

    def test_anonymous_gets_unsaved_cart(self, catalog, availability, local_state):
        registry = CartRegistry(catalog, availability, local_state)
        cart = registry.get(None)
        assert cart.user is None
        assert len(registry) == 0

    def test_catalog_reload_clamps_bound_carts(self, client, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state)
        cart = registry.get(verified_user)
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.add_to_cart("pmw-200", "PMW-200", 3500)

        client.get_rental_items = AsyncMock(return_value=FetchResult(success=True, items=[
            {"id": "pmw-200", "name": "PMW-200", "availableQuantity": 2, "reservedQuantity": 1},
        ]))
        asyncio.run(catalog.load_all_items())

        assert cart.lines["pmw-200"].quantity == 1
        assert cart.validate() == []

    def test_failed_reload_does_not_wipe_carts(self, client, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state)
        cart = registry.get(verified_user)
        cart.add_to_cart("wheels-slider", "Wheels Slider Tripod", 500)

        client.get_rental_items = AsyncMock(side_effect=DataServiceError("down", 503))
        client.get_inventory_items = AsyncMock(side_effect=DataServiceError("down", 503))
        client.get_all_inventory_items = AsyncMock(side_effect=DataServiceError("down", 503))
        asyncio.run(catalog.load_all_items())

        assert catalog.degraded is True
        assert "wheels-slider" in cart.lines
        assert local_state.has(verified_user.uid, CART_KEY) is True

    def test_close_stops_listening(self, client, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state)
        registry.get(verified_user).add_to_cart("pmw-200", "PMW-200", 3500)
        registry.close()

        asyncio.run(catalog.load_all_items())

        assert len(registry) == 0

    def test_bound_carts_are_capped(self, catalog, availability, local_state):
        registry = CartRegistry(catalog, availability, local_state, max_carts=3)

        for n in range(50):
            registry.get(CurrentUser(uid=f"renter-{n}", is_verified=True))

        assert len(registry) == 3
        assert "renter-49" in registry
        assert "renter-0" not in registry

    def test_recently_used_cart_survives_eviction(self, catalog, availability, local_state):
        registry = CartRegistry(catalog, availability, local_state, max_carts=2)
        first = CurrentUser(uid="renter-a", is_verified=True)
        registry.get(first)
        registry.get(CurrentUser(uid="renter-b", is_verified=True))

        registry.get(first)
        registry.get(CurrentUser(uid="renter-c", is_verified=True))

        assert "renter-a" in registry
        assert "renter-b" not in registry

    def test_evicted_cart_is_rebuilt_from_saved_state(self, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state, max_carts=1)
        registry.get(verified_user).add_to_cart("pmw-200", "PMW-200", 3500)
        registry.get(CurrentUser(uid="someone-else", is_verified=True))
        assert verified_user.uid not in registry

        cart = registry.get(verified_user)

        assert cart.lines["pmw-200"].quantity == 1

    def test_forget_releases_cart_but_keeps_saved_state(self, catalog, availability, local_state, verified_user):
        registry = CartRegistry(catalog, availability, local_state)
        registry.get(verified_user).add_to_cart("pmw-200", "PMW-200", 3500)

        assert registry.forget(verified_user.uid) is True
        assert registry.forget(verified_user.uid) is False
        assert len(registry) == 0
        assert local_state.has(verified_user.uid, CART_KEY) is True


class TestSummaryAndCheckout:
    def test_summary_totals(self, cart):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.add_to_cart("wheels-slider", "Wheels Slider Tripod", 500)

        summary = cart.summary()

        assert summary.total == 4000
        assert summary.item_count == 2
        assert summary.can_checkout is True
        assert summary.violations == []

    def test_checkout_requires_sign_in(self, catalog, availability, local_state):
        cart = CartStore(None, catalog, availability, local_state)
        result = cart.checkout()
        assert result.unauthenticated is True
        assert result.message == "Please log in to proceed with booking."

    def test_checkout_requires_verification(self, catalog, availability, local_state, unverified_user):
        cart = CartStore(unverified_user, catalog, availability, local_state)
        cart.add_to_cart("pmw-200", "PMW-200", 3500)

        result = cart.checkout(VerificationGate(unverified_user))

        assert result.success is False
        assert result.requires_verification is True

    def test_checkout_empty_cart_rejected(self, cart):
        result = cart.checkout()
        assert result.success is False
        assert result.message == "Your cart is empty."

    def test_checkout_blocked_by_violations(self, cart):
        cart.add_to_cart("pmw-200", "PMW-200", 3500)
        cart.lines["pmw-200"] = cart.lines["pmw-200"].model_copy(update={"quantity": 4})

        result = cart.checkout()

        assert result.success is False
        assert result.message == EXCEEDS_INVENTORY
        assert result.data == ['"PMW-200": Only 2 units available, but you have 4 in cart.']

    def test_checkout_hands_off_to_confirmation(self, cart, local_state, verified_user):
        local_state.set_json(verified_user.uid, SELECTED_PACKAGE_KEY, {"id": "basic-video-package"})
        cart.add_to_cart("pmw-200", "PMW-200", 3500)

        result = cart.checkout()

        assert result.success is True
        assert result.redirect == "/Confirmation"
        assert local_state.has(verified_user.uid, SELECTED_PACKAGE_KEY) is False
        assert local_state.get_json(verified_user.uid, SELECTED_ITEMS_KEY)[0]["id"] == "pmw-200"
