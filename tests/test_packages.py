"""
Tests for the package catalog and selector
"""

import pytest

from storefront.services.local_state import SELECTED_ITEMS_KEY, SELECTED_PACKAGE_KEY
from storefront.services.package_service import PACKAGES, PackageSelector, get_package
from storefront.services.verification import VerificationGate


class TestPackageCatalog:
    def test_three_fixed_packages(self):
        assert [p.id for p in PACKAGES] == [
            "basic-video-package",
            "professional-video-package",
            "multicam-production-package",
        ]
        assert [p.price for p in PACKAGES] == [15000, 45000, 60000]

    def test_multicam_bundles_two_pmw_200(self):
        pkg = get_package("multicam-production-package")
        pmw = [item for item in pkg.items if item.id == "pmw-200"][0]
        assert pmw.quantity == 2

    def test_packages_are_immutable(self):
        with pytest.raises(Exception):
            PACKAGES[0].price = 1

    def test_unknown_package(self):
        assert get_package("nope") is None


class TestPackageAvailability:
    def test_available_when_every_item_is(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)
        result = selector.get_package_availability(get_package("basic-video-package"))
        assert result.is_available is True
        assert result.unavailable_items == []

    def test_lists_unavailable_items(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)
        result = selector.get_package_availability(get_package("professional-video-package"))
        assert result.is_available is False
        assert [i.id for i in result.unavailable_items] == [
            "sony-pmw-350k", "lumantek-switcher", "saramonic-comset", "accsoon-transmitter"
        ]

    def test_bundled_quantity_is_checked(self, availability, local_state, verified_user):
        """atem-monitor has no free units, pmw-200 has exactly the two needed"""
        selector = PackageSelector(verified_user, availability, local_state)
        result = selector.get_package_availability(get_package("multicam-production-package"))
        ids = [i.id for i in result.unavailable_items]
        assert "pmw-200" not in ids
        assert "atem-monitor" in ids


class TestSelectPackage:
    def test_requires_sign_in(self, availability, local_state):
        selector = PackageSelector(None, availability, local_state)
        result = selector.select_package("basic-video-package")
        assert result.unauthenticated is True

    def test_unavailable_package_is_not_persisted(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)

        result = selector.select_package("professional-video-package")

        assert result.success is False
        assert result.message.startswith("Package unavailable. Following items are out of stock: ")
        assert "sony pmw-350k" in result.message
        assert local_state.has(verified_user.uid, SELECTED_PACKAGE_KEY) is False

    def test_select_persists_and_clears_selected_items(self, availability, local_state, verified_user):
        local_state.set_json(verified_user.uid, SELECTED_ITEMS_KEY, [{"id": "pmw-200"}])
        selector = PackageSelector(verified_user, availability, local_state)

        result = selector.select_package("basic-video-package")

        assert result.success is True
        assert result.message == 'Package "Package 1" selected! Proceed to schedule.'
        assert local_state.get_json(verified_user.uid, SELECTED_PACKAGE_KEY)["id"] == "basic-video-package"
        assert local_state.has(verified_user.uid, SELECTED_ITEMS_KEY) is False
        assert selector.selected_package().id == "basic-video-package"

    def test_unknown_package_rejected(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)
        assert selector.select_package("nope").success is False


class TestProceedToSchedule:
    def test_requires_verification(self, availability, local_state, unverified_user):
        selector = PackageSelector(unverified_user, availability, local_state, VerificationGate(unverified_user))
        selector.select_package("basic-video-package")

        result = selector.proceed_to_schedule()

        assert result.requires_verification is True

    def test_requires_selection(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)
        result = selector.proceed_to_schedule()
        assert result.message == "Please select a package first."

    def test_rechecks_availability(self, availability, local_state, verified_user):
        local_state.set_json(
            verified_user.uid, SELECTED_PACKAGE_KEY,
            get_package("professional-video-package").model_dump(by_alias=True)
        )
        selector = PackageSelector(verified_user, availability, local_state)

        result = selector.proceed_to_schedule()

        assert result.success is False
        assert result.message == "Selected package is no longer available. Please choose another package."

    def test_redirects_to_schedule(self, availability, local_state, verified_user):
        selector = PackageSelector(verified_user, availability, local_state)
        selector.select_package("basic-video-package")

        result = selector.proceed_to_schedule()

        assert result.success is True
        assert result.redirect == "/rent-schedule"
