"""
Shared fixtures: in-memory local state store, a mocked data service client
and a catalog loaded from it.
"""

import asyncio
import os
import sys

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("DAMAGE_SETTLE_SECONDS", "0")

from storefront.database import Base  # noqa: E402
from storefront import models  # noqa: E402,F401
from storefront.services.availability import AvailabilityCalculator  # noqa: E402
from storefront.services.catalog_service import CatalogService  # noqa: E402
from storefront.services.data_service_client import FetchResult  # noqa: E402
from storefront.services.local_state import LocalStateStore  # noqa: E402
from storefront.utils.security import CurrentUser  # noqa: E402


PREDEFINED_ITEMS = [
    {"id": "pmw-200", "name": "PMW-200", "category": "camera", "price": 3500,
     "availableQuantity": 3, "reservedQuantity": 1, "totalQuantity": 3},
    {"id": "sachtler-tripod", "name": "Sachtler Video 20 S1 100mm Ball Head Tripod System",
     "category": "tripod", "price": 800, "availableQuantity": 2, "totalQuantity": 2},
    {"id": "wheels-slider", "name": "Wheels Slider Tripod", "category": "tripod",
     "price": 500, "availableQuantity": 1, "totalQuantity": 1},
]

INVENTORY_ITEMS = [
    {"id": "cartoni-tripod", "name": "Cartoni Laser Z100 Fluid Head Tripod Aluminum 2",
     "category": "tripod", "price": 900, "availableQuantity": 1},
    {"id": "atem-monitor", "name": "monitor ATEM156-CO HDMI 15.6 Video Monitor with Flightcase",
     "category": "monitor", "price": 1200, "availableQuantity": 0},
]


def make_client(rental_items=None, inventory_items=None, all_inventory_items=None, bookings=None):
    """Data service client double returning fixed collections"""
    client = MagicMock()
    client.get_rental_items = AsyncMock(
        return_value=FetchResult(success=True, items=list(rental_items or []))
    )
    client.get_inventory_items = AsyncMock(
        return_value=FetchResult(success=True, items=list(inventory_items or []))
    )
    client.get_all_inventory_items = AsyncMock(
        return_value=FetchResult(success=True, items=list(all_inventory_items or []))
    )
    client.get_bookings = AsyncMock(
        return_value=FetchResult(success=True, items=list(bookings or []))
    )
    client.ping = AsyncMock(return_value=True)
    client.subscribe_to_rental_items = MagicMock(return_value=MagicMock())
    client.subscribe_to_inventory = MagicMock(return_value=MagicMock())
    return client


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def local_state(session_factory):
    return LocalStateStore(session_factory)


@pytest.fixture
def client():
    return make_client(PREDEFINED_ITEMS, INVENTORY_ITEMS)


@pytest.fixture
def catalog(client):
    service = CatalogService(client, damage_settle_seconds=0)
    asyncio.run(service.load_all_items())
    return service


@pytest.fixture
def availability(catalog):
    return AvailabilityCalculator(catalog)


@pytest.fixture
def verified_user():
    return CurrentUser(uid="user-1", email="renter@example.com", is_verified=True)


@pytest.fixture
def unverified_user():
    return CurrentUser(uid="user-2", email="new@example.com", is_verified=False)
