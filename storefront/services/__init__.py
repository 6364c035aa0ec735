# Services package
from .outcomes import ActionResult
from .events import InventoryEvent, InventoryEventBus
from .data_service_client import DataServiceClient, DataServiceError, FetchResult
from .local_state import LocalStateStore
from .catalog_service import CatalogService, CatalogCollision, merge_catalogs, normalize_records
from .availability import AvailabilityCalculator
from .cart_validator import CartValidator
from .cart_service import CartStore, CartRegistry
from .package_service import PACKAGES, PackageSelector, get_package
from .booking_calendar import BookingCalendar, shift_month
from .verification import VerificationGate

__all__ = [
    "ActionResult",
    "InventoryEvent", "InventoryEventBus",
    "DataServiceClient", "DataServiceError", "FetchResult",
    "LocalStateStore",
    "CatalogService", "CatalogCollision", "merge_catalogs", "normalize_records",
    "AvailabilityCalculator",
    "CartValidator",
    "CartStore", "CartRegistry",
    "PACKAGES", "PackageSelector", "get_package",
    "BookingCalendar", "shift_month",
    "VerificationGate",
]
