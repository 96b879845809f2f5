"""
System health router.

Wired to:
- TestHistoryStore for storage connectivity
- Settings for configuration
"""

import time

from fastapi import APIRouter

from covnet import __version__
from covnet.config import get_settings
from covnet.models.enums import ScopeKind
from covnet.storage import StorageError, get_storage
from covnet.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/health")
def system_health():
    """
    Get system health status.
    Checks storage connectivity and reports the default engine configuration.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time

    db_status = "healthy"
    covenant_count = 0
    try:
        # Simple read to verify connectivity
        covenant_count = len(get_storage().list_scope_ids(ScopeKind.COVENANTS))
    except StorageError as e:
        logger.warning("storage_health_check_failed", error=str(e))
        db_status = f"unhealthy: {e}"

    return {
        "success": True,
        "data": {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            "database": db_status,
            "covenant_count": covenant_count,
            "engine_config": settings.engine_config().model_dump(mode="json"),
        },
    }
