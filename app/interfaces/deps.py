"""
API Dependencies.
"""

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.domain.repositories.upload_job_repository import UploadJobRepository
from app.infrastructure.database import Database
from app.infrastructure.repositories.upload_job_repository import SQLAlchemyUploadJobRepository
from app.application.services.upload_orchestrator import UploadOrchestrator


def get_database(request: Request) -> Database:
    """The Database created by the application lifespan."""
    return request.app.state.database


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_upload_job_repository(db: Session = Depends(get_db)) -> UploadJobRepository:
    """Get upload job repository instance."""
    return SQLAlchemyUploadJobRepository(db)


def get_upload_orchestrator(
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    jobs: UploadJobRepository = Depends(get_upload_job_repository),
) -> UploadOrchestrator:
    return UploadOrchestrator(database, settings, jobs)
