"""
FastAPI routers.
"""
from app.routers.health import router as health_router
from app.routers.voices import router as voices_router
from app.routers.jobs import router as jobs_router
from app.routers.media import router as media_router
from app.routers.credits import router as credits_router

__all__ = ['health_router', 'voices_router', 'jobs_router', 'media_router', 'credits_router']
