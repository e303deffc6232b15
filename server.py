#!/usr/bin/env python3
"""
CreativeAI FastAPI Server

Accepts text-to-speech, voice conversion, sound effect and image generation
requests and runs them as durable, retrying, credit-gated background jobs.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import APP_NAME, APP_VERSION, SERVER_HOST, SERVER_PORT, ensure_directories
from app.container import Container, build_container
from app.routers import health_router, voices_router, jobs_router, media_router, credits_router

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the FastAPI application.

    With no container, the lifespan builds one from app.config and owns it.
    A container passed in is used as-is and its lifecycle stays with the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan context manager.

        Startup:
            - Build clients and services
            - Initialize database and create tables
            - Start the event bus and durable functions

        Shutdown:
            - Stop the event bus, letting in-flight runs finish
            - Close the HTTP client and database connections
        """
        if container is not None:
            yield
            return

        print(f'Starting {APP_NAME} v{APP_VERSION}...')
        ensure_directories()
        owned = build_container()
        app.state.container = owned

        print('Initializing database and event bus...')
        await owned.start()
        print(f'Durable functions: {", ".join(owned.orchestrator.functions)}')
        print(f'Server ready at http://{SERVER_HOST}:{SERVER_PORT}')
        print('API documentation available at /docs')

        yield

        print('Shutting down...')
        await owned.stop()
        print('Shutdown complete.')

    app = FastAPI(
        title=APP_NAME,
        description='Durable AI media generation jobs.',
        version=APP_VERSION,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        # Full detail stays in the server log
        logger.exception('Unhandled error on %s %s', request.method, request.url.path)
        return JSONResponse(status_code=500, content={'detail': 'Internal server error'})

    # Register routers
    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(voices_router)
    app.include_router(media_router)
    app.include_router(credits_router)

    return app


app = create_app()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    uvicorn.run(
        app,
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=False,
        log_level='info',
    )
