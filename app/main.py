"""FastAPI application — main entry point."""

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.core.exceptions import AppError, global_exception_handler
from app.core.logging import configure_logging
from app.core.middleware import setup_middleware
from app.infrastructure.database import Database
from app.interfaces.api.uploads import router as uploads_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — owns the database connection pool."""
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting CSV Table Loader...", env=settings.ENVIRONMENT)

    database = Database.from_settings(settings)
    database.create_tables()
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.state.database = database

    yield

    database.dispose()
    logger.info("CSV Table Loader stopped")


app = FastAPI(
    title="CSV Table Loader",
    description="Upload CSV files and load each one into its own database table",
    version="1.0.0",
    lifespan=lifespan,
)

setup_middleware(app)

app.add_exception_handler(AppError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(uploads_router)


@app.get("/")
def root():
    return {
        "name": "CSV Table Loader",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
