"""
agentics.api - FastAPI Surface
================================

    >>> from agentics.api import create_app
    >>> app = create_app()          # uvicorn agentics.api:create_app --factory

The app owns (or is handed) one Agentics facade, stored on ``app.state``;
its lifespan connects and disconnects the facade.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from agentics import __version__
from agentics.api.errors import setup_exception_handlers
from agentics.api.routes import router
from agentics.core.config import AgenticsConfig
from agentics.facade import Agentics


def create_app(
    config: Optional[AgenticsConfig] = None,
    agentics: Optional[Agentics] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration used when no facade is supplied.
        agentics: Pre-built facade (tests inject one with a custom store).
    """
    facade = agentics or Agentics(config, configure_logs=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await facade.initialize()
        try:
            yield
        finally:
            await facade.shutdown()

    app = FastAPI(title="Agentics", version=__version__, lifespan=lifespan)
    app.state.agentics = facade
    setup_exception_handlers(app)
    app.include_router(router)
    return app


__all__ = ["create_app"]
