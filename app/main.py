"""
Recruitment Platform API - Main Application

FastAPI backend with:
- MongoDB for every entity (users, jobs, applications, interviews)
- JWT authentication with role gates (applicant, recruiter, admin)
- Resume uploads with optional DeepSeek parsing
- structlog request logging

Run: uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.observability import RequestIdMiddleware, setup_logging
from app.db.mongodb import MongoStore, connect_store, get_store

settings = get_settings()
setup_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and create indexes on startup, close it on shutdown."""
    store = connect_store(settings)
    app.state.store = store
    if store.ping():
        store.init_indexes()
        logger.info("mongodb_connected", database=settings.mongodb_db)
    else:
        logger.warning("mongodb_unreachable", uri_host=settings.mongodb_uri.split("@")[-1])
    yield
    store.close()
    logger.info("mongodb_closed")


# Create FastAPI app
app = FastAPI(
    title="Recruitment Platform API",
    description="""
    Job postings, applications, interviews and dashboards.

    ## Features
    - **Authentication**: JWT-based auth for applicants, recruiters and admins
    - **Jobs**: Search, filter, post and manage job postings
    - **Applications**: Apply with a resume, track status through the timeline
    - **Interviews**: Schedule, reschedule, feedback; status flows back to the application
    - **Dashboards**: Per-role statistics computed from live data
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {
        "success": True,
        "message": "Welcome to the Recruitment Platform API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check(store: MongoStore = Depends(get_store)):
    """Liveness plus database reachability."""
    return {
        "status": "OK",
        "database": "connected" if store.ping() else "disconnected",
        "timestamp": datetime.utcnow().isoformat(),
    }
