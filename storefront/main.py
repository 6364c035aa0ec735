from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import logging
import uuid

from .config import settings
from .database import create_tables, SessionLocal
from .services.availability import AvailabilityCalculator
from .services.cart_service import CartRegistry
from .services.catalog_service import CatalogService
from .services.data_service_client import DataServiceClient
from .services.events import InventoryEventBus
from .services.local_state import LocalStateStore
from .utils.logging_config import setup_logging, set_request_context

# Import all routers
from .routers import catalog, cart, packages, schedule, verification, events, health

logger = logging.getLogger(__name__)


def init_services(app: FastAPI, client: DataServiceClient, session_factory=SessionLocal) -> CatalogService:
    """Wire the app-scoped services onto app.state"""
    bus = InventoryEventBus()
    catalog_service = CatalogService(client, events=bus)
    availability = AvailabilityCalculator(catalog_service)
    local_state = LocalStateStore(session_factory)

    app.state.data_client = client
    app.state.events = bus
    app.state.catalog = catalog_service
    app.state.availability = availability
    app.state.local_state = local_state
    app.state.carts = CartRegistry(catalog_service, availability, local_state)
    return catalog_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    logger.info("Starting storefront...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS Origins: {settings.cors_origins}")

    create_tables()

    client = DataServiceClient()
    catalog_service = init_services(app, client)

    items = await catalog_service.load_all_items()
    logger.info(f"Catalog ready: {len(items)} items (degraded={catalog_service.degraded})")

    catalog_service.start(subscribe=settings.sync_enabled)
    if settings.sync_enabled:
        logger.info(f"Catalog subscriptions polling every {settings.sync_poll_interval}s")
    else:
        logger.info("Catalog subscriptions disabled")

    yield

    # Shutdown
    logger.info("Shutting down storefront...")
    catalog_service.stop()
    app.state.carts.close()
    await client.aclose()


# Create FastAPI app
app = FastAPI(
    title="Rental Storefront API",
    description="Inventory-aware cart, packages and booking calendar for equipment rental",
    version="1.0.0",
    lifespan=lifespan
)


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# Include routers
app.include_router(health.router)
app.include_router(catalog.router)
app.include_router(cart.router)
app.include_router(packages.router)
app.include_router(schedule.router)
app.include_router(verification.router)
app.include_router(events.router)


@app.get("/")
async def root():
    return {
        "message": "Rental Storefront API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
    }
