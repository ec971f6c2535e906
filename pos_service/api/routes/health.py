"""Health check and system endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text

from pos_service import __version__
from pos_service.api.dependencies.common import get_app_settings, get_connection_cache
from pos_service.core.database import DatabaseManager, get_database
from pos_service.core.settings import Settings
from pos_service.schemas.base import HealthCheckResponse
from pos_service.tenancy.connection_cache import TenantConnectionCache

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    database: DatabaseManager = Depends(get_database),
    connection_cache: TenantConnectionCache = Depends(get_connection_cache),
    settings: Settings = Depends(get_app_settings),
):
    """
    Service health check endpoint.

    Checks the central database and reports how many tenant database
    handles this process holds. Tenant databases are not probed.
    """
    health_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc),
        "version": __version__,
        "environment": settings.environment,
        "dependencies": {}
    }

    try:
        async with database.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1 as health_check"))
            if result.scalar() != 1:
                raise RuntimeError("Unexpected database response")
        health_data["dependencies"]["central_database"] = {
            "status": "healthy",
            "details": "Connection successful"
        }
    except Exception:
        logger.exception("Central database health check failed")
        health_data["dependencies"]["central_database"] = {
            "status": "unhealthy",
            "details": "Database connection failed"
        }
        health_data["status"] = "unhealthy"

    health_data["dependencies"]["tenant_connections"] = {
        "status": "healthy",
        "cached_handles": len(connection_cache),
    }

    return HealthCheckResponse(**health_data)
