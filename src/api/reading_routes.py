"""
Read-only routes over the passive cache
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


class ApiResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    data: Optional[Any] = None


def _not_found() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=ApiResponse(success=False, error="not found").model_dump()
    )


def create_reading_routes(cache):
    """Create the /temperature and /ups routes backed by cache"""
    router = APIRouter(tags=["readings"])

    def list_family(family: str) -> ApiResponse:
        return ApiResponse(success=True, data=[item.to_dict() for item in cache.get_all(family)])

    def get_one(family: str, item_id: str):
        item = cache.get_by_id(family, item_id)
        if item is None:
            logger.debug(f"No {family} reading for id {item_id}")
            return _not_found()
        return ApiResponse(success=True, data=item.to_dict())

    @router.get("/temperature", response_model=ApiResponse)
    async def get_temperatures():
        """All temperature sensors of the last scan"""
        return list_family("temperature")

    @router.get("/temperature/{sensor_id}", response_model=ApiResponse)
    async def get_temperature(sensor_id: str):
        return get_one("temperature", sensor_id)

    @router.get("/ups", response_model=ApiResponse)
    async def get_supplies():
        """All UPS readings of the last refresh"""
        return list_family("ups")

    @router.get("/ups/{ups_id}", response_model=ApiResponse)
    async def get_supply(ups_id: str):
        return get_one("ups", ups_id)

    return router
