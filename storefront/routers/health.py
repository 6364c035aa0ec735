"""
Health Check Endpoints

- /health - Simple liveness
- /health/ready - Catalog loaded and local state store reachable,
  with the data service reachability reported alongside
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
import time

from ..database import get_db
from ..services.catalog_service import CatalogService
from ..services.data_service_client import DataServiceClient
from ..utils.dependencies import get_catalog, get_data_client

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


async def get_data_service_health(client: DataServiceClient) -> dict:
    """Check the data service answers. A miss degrades the catalog, it does not stop the storefront."""
    start = time.time()
    reachable = await client.ping()
    return {
        "status": "up" if reachable else "down",
        "latency_ms": round((time.time() - start) * 1000, 2),
    }


@router.get("")
@router.get("/")
async def simple_health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check(
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog),
    data_client: DataServiceClient = Depends(get_data_client),
):
    db_health = get_db_health(db)
    checks = {
        "database": db_health,
        "data_service": await get_data_service_health(data_client),
        "catalog": {
            "loaded": catalog.loaded,
            "degraded": catalog.degraded,
            "items": len(catalog.items),
        },
    }

    if db_health["status"] == "up" and catalog.loaded:
        return {
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        }

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "status": "not_ready",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )
