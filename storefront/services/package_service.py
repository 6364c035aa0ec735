"""
Package Catalog & Selector

Fixed bundles sold at a flat price. A package is available only when every
component item is available at the bundled quantity. Selecting a package
makes it the active selection and drops any individually picked items.
"""

import logging
from typing import Dict, List, Optional

from ..config import settings
from ..schemas.package import Package, PackageAvailability, PackageItem
from ..utils.security import CurrentUser
from .availability import AvailabilityCalculator
from .local_state import SELECTED_ITEMS_KEY, SELECTED_PACKAGE_KEY, LocalStateStore
from .outcomes import ActionResult
from .verification import VerificationGate

logger = logging.getLogger(__name__)

CAMERA_INCLUSIONS = "(inclusion: sdi, battery, charger and sd card)"

PACKAGES: List[Package] = [
    Package(
        id="basic-video-package",
        name="Package 1",
        description="Perfect for small events and basic video production",
        price=15000,
        display_items=[
            f"1 camera {CAMERA_INCLUSIONS}",
            "1 tripod",
            "1 wheel slider",
            "1 cameraman",
        ],
        items=[
            PackageItem(id="pmw-200", name="PMW-200", quantity=1),
            PackageItem(id="sachtler-tripod", name="Sachtler Video 20 S1 100mm Ball Head Tripod System", quantity=1),
            PackageItem(id="wheels-slider", name="Wheels Slider Tripod", quantity=1),
        ],
    ),
    Package(
        id="professional-video-package",
        name="Package 2",
        description="Professional multi-camera setup for events",
        price=45000,
        display_items=[
            f"2 cameras {CAMERA_INCLUSIONS}",
            "2 tripods",
            "1 wheel slider",
            "1 switcher",
            "1 monitor",
            "1 communication set",
            "2 cameramen",
            "1 switcher operator",
        ],
        items=[
            PackageItem(id="sony-pmw-350k", name="sony pmw-350k", quantity=1),
            PackageItem(id="cartoni-tripod", name="Cartoni Laser Z100 Fluid Head Tripod Aluminum 2", quantity=1),
            PackageItem(
                id="lumantek-switcher",
                name='Lumantek ez-Pro VS10 3G-SDI/HDMI Video Switcher with 5" LED Touchscreen',
                quantity=1,
            ),
            PackageItem(
                id="saramonic-comset",
                name=(
                    "Saramonic WiTalk-WT7S 7-Person Full-Duplex Wireless Intercom System "
                    "with Single-Ear Remote Headsets (1.9 GHz)"
                ),
                quantity=1,
            ),
            PackageItem(id="accsoon-transmitter", name="Accsoon CineView Master 4K", quantity=1),
        ],
    ),
    Package(
        id="multicam-production-package",
        name="Package 3",
        description="Premium broadcast package for large productions",
        price=60000,
        display_items=[
            f"3 cameras {CAMERA_INCLUSIONS}",
            "3 tripods",
            "1 wheel slider",
            "1 switcher",
            "1 monitor",
            "1 communication set",
            "3 cameramen",
            "1 switcher operator",
        ],
        items=[
            PackageItem(id="pmw-200", name="PMW-200", quantity=2),
            PackageItem(id="panasonic-hpx3100", name="Panasonic AJ HPX3100", quantity=1),
            PackageItem(id="sony-mcx-500", name="sony mcx-500", quantity=1),
            PackageItem(
                id="saramonic-comset",
                name=(
                    "Saramonic WiTalk-WT7S 7-Person Full-Duplex Wireless Intercom System "
                    "with Single-Ear Remote Headsets (1.9 GHz)"
                ),
                quantity=1,
            ),
            PackageItem(
                id="atem-monitor",
                name="monitor ATEM156-CO HDMI 15.6 Video Monitor with Flightcase",
                quantity=2,
            ),
            PackageItem(id="hollyland-transmitter", name="Hollyland Mars 4K Wireless Video Transmitter", quantity=1),
        ],
    ),
]

PACKAGES_BY_ID: Dict[str, Package] = {pkg.id: pkg for pkg in PACKAGES}


def get_package(package_id: str) -> Optional[Package]:
    return PACKAGES_BY_ID.get(package_id)


class PackageSelector:
    def __init__(
        self,
        user: Optional[CurrentUser],
        availability: AvailabilityCalculator,
        store: LocalStateStore,
        gate: Optional[VerificationGate] = None,
    ):
        self.user = user
        self.availability = availability
        self.store = store
        self.gate = gate or VerificationGate(user)

    def get_package_availability(self, pkg: Package) -> PackageAvailability:
        unavailable = [
            item for item in pkg.items
            if not self.availability.is_item_available(item.id, item.quantity)
        ]
        return PackageAvailability(is_available=not unavailable, unavailable_items=unavailable)

    def is_package_available(self, pkg: Package) -> bool:
        return self.get_package_availability(pkg).is_available

    def selected_package(self) -> Optional[Package]:
        if self.user is None:
            return None
        raw = self.store.get_json(self.user.uid, SELECTED_PACKAGE_KEY)
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        # Resolve against the static list so edits to a bundle take effect
        return get_package(raw["id"])

    def select_package(self, package_id: str) -> ActionResult:
        if self.user is None:
            return ActionResult.login_required("Please log in to select a package.")

        pkg = get_package(package_id)
        if pkg is None:
            return ActionResult.rejected("Package not found.")

        availability = self.get_package_availability(pkg)
        if not availability.is_available:
            names = ", ".join(item.name for item in availability.unavailable_items)
            return ActionResult.rejected(
                f"Package unavailable. Following items are out of stock: {names}",
                data=availability,
            )

        uid = self.user.uid
        self.store.set_json(uid, SELECTED_PACKAGE_KEY, pkg.model_dump(by_alias=True))
        self.store.remove(uid, SELECTED_ITEMS_KEY)
        logger.info(f"User {uid} selected package {pkg.id}")
        return ActionResult.ok(f'Package "{pkg.name}" selected! Proceed to schedule.', data=pkg)

    def proceed_to_schedule(self) -> ActionResult:
        if self.user is None:
            return ActionResult.login_required("Please log in to proceed with booking.")

        verdict = self.gate.require()
        if not verdict.success:
            return verdict

        pkg = self.selected_package()
        if pkg is None:
            return ActionResult.rejected("Please select a package first.")

        if not self.is_package_available(pkg):
            return ActionResult.rejected(
                "Selected package is no longer available. Please choose another package."
            )

        return ActionResult.ok(redirect=settings.schedule_path, data=pkg)
