"""
Campus Placement Portal - Main Application

FastAPI backend with:
- PostgreSQL for drives, eligibility, registrations and attendance
- Celery (Redis broker) for background jobs, inline when the queue is down
- MongoDB for job results and dead-lettered jobs
- JWT authentication with HEAD / COORDINATOR / STAFF / STUDENT roles

Run: uvicorn placement_portal.main:app --reload
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from placement_portal.api import api_router
from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import PlacementError
from placement_portal.db.mongodb import init_mongo_indexes, test_mongo_connection
from placement_portal.db.postgres import engine, test_postgres_connection
from placement_portal.db.tables import create_schema

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Campus Placement Portal",
    description="""
    Placement drive management for a college placement cell.

    ## Features
    - **Drives**: HEAD creates drives with academic criteria, optionally auto-published
    - **Eligibility**: Criteria evaluation per drive, coordinator sub-filters
    - **Publishing**: Coordinators publish drives with a selected student list
    - **Registrations**: Students register through the eligibility/selection gate
    - **Attendance**: Marking, publication and the finished-drives archive
    - **Analytics**: Dashboard aggregates with a short TTL cache
    - **Jobs**: Background jobs with retries and a dead-letter store
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlacementError)
async def placement_error_handler(request: Request, exc: PlacementError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Include API routes
app.include_router(api_router, prefix="/api")

# Uploaded JDs and generated exports
os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")


@app.on_event("startup")
async def startup_event():
    """Create missing tables and MongoDB indexes."""
    try:
        create_schema(engine)
        logger.info("PostgreSQL schema ready")
    except SQLAlchemyError as e:
        logger.error("PostgreSQL schema initialization failed: %s", e)
    try:
        init_mongo_indexes()
    except PyMongoError as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
