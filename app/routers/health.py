"""
Health check endpoint.
"""
from typing import List
from pydantic import BaseModel
from fastapi import APIRouter, Depends

from app.config import APP_VERSION
from app.container import Container
from app.dependencies import get_container


router = APIRouter(tags=['health'])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    event_bus_running: bool
    functions: List[str]
    version: str


@router.get('/health', response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> HealthResponse:
    """
    Check server health status.

    Returns event bus state, registered durable functions, and server version.
    Fast response - no database queries.
    """
    return HealthResponse(
        status='ok',
        event_bus_running=container.bus.is_running,
        functions=sorted(container.orchestrator.functions),
        version=APP_VERSION,
    )
