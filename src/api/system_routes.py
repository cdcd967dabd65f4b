"""
System health and monitoring API routes
"""

from fastapi import APIRouter
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def create_system_routes(cache, status_provider: Optional[Callable[[], Dict[str, Any]]] = None):
    """Create system monitoring routes"""
    router = APIRouter(prefix="/system", tags=["system"])

    @router.get("/health")
    async def system_health():
        """System health check"""
        try:
            status = status_provider() if status_provider else {}
            return {
                "status": "healthy",
                "cache": cache.counts(),
                **status,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        except Exception as e:
            logger.error(f"Error building health status: {e}")
            return {
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

    return router
