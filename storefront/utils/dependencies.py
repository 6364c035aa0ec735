from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..schemas.common import ActionResponse
from ..services.availability import AvailabilityCalculator
from ..services.booking_calendar import BookingCalendar
from ..services.cart_service import CartRegistry, CartStore
from ..services.catalog_service import CatalogService
from ..services.data_service_client import DataServiceClient
from ..services.events import InventoryEventBus
from ..services.local_state import LocalStateStore
from ..services.outcomes import ActionResult
from ..services.package_service import PackageSelector
from ..services.verification import VerificationGate
from .logging_config import set_user_context
from .security import CurrentUser, verify_access_token

# Anonymous browsing is allowed, so a missing token is not an error
security = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[CurrentUser]:
    """Signed-in user from the bearer token, or None"""
    if credentials is None:
        return None
    user = verify_access_token(credentials.credentials)
    if user is not None:
        set_user_context(user.uid)
    return user


# ================================
# App-scoped services
# ================================

def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_availability(request: Request) -> AvailabilityCalculator:
    return request.app.state.availability


def get_local_state(request: Request) -> LocalStateStore:
    return request.app.state.local_state


def get_cart_registry(request: Request) -> CartRegistry:
    return request.app.state.carts


def get_event_bus(request: Request) -> InventoryEventBus:
    return request.app.state.events


def get_data_client(request: Request) -> DataServiceClient:
    return request.app.state.data_client


# ================================
# Per-user services
# ================================

def get_cart(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    registry: CartRegistry = Depends(get_cart_registry),
) -> CartStore:
    return registry.get(user)


def get_gate(user: Optional[CurrentUser] = Depends(get_optional_user)) -> VerificationGate:
    return VerificationGate(user)


def get_package_selector(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    availability: AvailabilityCalculator = Depends(get_availability),
    store: LocalStateStore = Depends(get_local_state),
) -> PackageSelector:
    return PackageSelector(user, availability, store)


async def get_booking_calendar(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    store: LocalStateStore = Depends(get_local_state),
    client: DataServiceClient = Depends(get_data_client),
) -> BookingCalendar:
    booking_calendar = BookingCalendar(user, store, client)
    await booking_calendar.load_bookings()
    return booking_calendar


# ================================
# Result mapping
# ================================

def to_response(result: ActionResult) -> ActionResponse:
    """
    Translate a service outcome into the HTTP response.
    401 when sign-in is needed, 403 when verification is needed,
    409 for any other rule the action broke.
    """
    body = ActionResponse(
        success=result.success,
        message=result.message,
        redirect=result.redirect,
        requires_verification=result.requires_verification,
        data=result.data,
    )
    if result.success:
        return body

    if result.unauthenticated:
        status_code = status.HTTP_401_UNAUTHORIZED
    elif result.requires_verification:
        status_code = status.HTTP_403_FORBIDDEN
    else:
        status_code = status.HTTP_409_CONFLICT

    raise HTTPException(status_code=status_code, detail=body.model_dump(mode="json"))
