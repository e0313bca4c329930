"""Database engine, session factory and declarative base.

The engine is the process-wide connection pool. It is created once in the
application lifespan, injected into request handlers, and disposed at shutdown.
"""

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import Settings

logger = structlog.get_logger(__name__)

Base = declarative_base()


class Database:
    """Owns the SQLAlchemy engine and the ORM session factory."""

    def __init__(self, url: str, pool_size: int = 5, max_overflow: int = 10):
        engine_kwargs = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow

        self.engine: Engine = create_engine(url, **engine_kwargs)
        # Bookkeeping rows stay readable after commit without another round trip
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    def create_tables(self) -> None:
        """Create the bookkeeping tables if they are missing."""
        # Registers the models on Base.metadata
        from app.domain.models.upload import UploadJob  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created/verified")

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connection pool disposed")
