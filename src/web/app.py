"""
FastAPI application factory for the hub counter.

Routes:
- /api/* -> REST API (counts, reset, recalibrate, status, health)
- /ws -> WebSocket count pushes and commands
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .broadcaster import manager
from .routes import api, ws


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Host-loop pushes are scheduled onto this loop.
    manager.bind_loop(asyncio.get_running_loop())
    yield
    manager.bind_loop(None)


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Hub Counter",
        version="0.1.0",
        description="Multi-lane distance-sensor ball counter",
        lifespan=lifespan,
    )

    # Dashboards are served from elsewhere during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    app.include_router(ws.router)

    return app


# Exported application instance for uvicorn
app = create_app()
