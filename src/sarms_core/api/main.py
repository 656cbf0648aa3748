"""SARMS Core FastAPI application."""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import Settings, get_settings
from ..store import InMemoryRequestStore, RequestStore
from .routers import priority, requests

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("sarms-core")


def create_app(
    store: Optional[RequestStore] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API around a request store.

    Args:
        store: Request store (defaults to a fresh in-memory store)
        settings: Settings (defaults to get_settings())
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="SARMS Core API",
        description="Software/Automation Request Management - priority and status workflow",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.store = store if store is not None else InMemoryRequestStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(priority.router, prefix="/api/v1/priority")
    app.include_router(requests.router, prefix="/api/v1/requests")

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "SARMS Core API",
            "version": __version__,
            "docs": "/docs",
            "store": type(app.state.store).__name__,
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    logger.info(f"Created SARMS Core API with {type(app.state.store).__name__}")
    return app


app = create_app()
