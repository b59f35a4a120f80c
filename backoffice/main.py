"""
Nomadays back-office API - Main application entry point.

Trip selection workflow (eligible trips, cotation catalog, selection commit)
and template sync (status and pull of template updates into circuits).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice import __version__
from backoffice.config import get_settings
from backoffice.api import (
    selection,
    template_sync,
    trip_conditions,
)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting {settings.app_name}...")
    yield
    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Nomadays Back-office API

    - **Trip selection**: pick the trip proposal and cotation confirmed for a dossier;
      the other open proposals are archived in the same transaction
    - **Template sync**: detect circuit blocks whose template changed and pull updates
    - **Trip conditions**: condition choices and the resulting raw cost of a trip
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(selection.router, tags=["Trip Selection"])  # /dossiers/... and /trips/... endpoints
app.include_router(template_sync.router, tags=["Template Sync"])
app.include_router(trip_conditions.router, prefix="/trip-structure", tags=["Trip Conditions"])


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
    }
