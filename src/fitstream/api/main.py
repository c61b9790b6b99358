"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import SQLModel

from fitstream.db.engine import get_engine
from fitstream.api.routes import streams


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (idempotent)
        SQLModel.metadata.create_all(get_engine())
        yield

    app = FastAPI(
        title="fitstream",
        description="Activity telemetry processing for context-bounded consumers",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(streams.router, prefix="/activities", tags=["streams"])

    return app


# Module-level app instance for uvicorn
app = create_app()
