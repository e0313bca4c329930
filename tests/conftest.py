"""
Shared fixtures: a file-backed SQLite store per test, settings pointing at it,
and helpers to write CSV uploads and read back the loaded tables.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect, text

from app.config import Settings, get_settings
from app.infrastructure.database import Database
from app.infrastructure.repositories.upload_job_repository import SQLAlchemyUploadJobRepository


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'loader.db'}",
        UPLOAD_DIR=str(tmp_path / "uploads"),
    )


@pytest.fixture
def database(settings: Settings):
    db = Database.from_settings(settings)
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def session(database: Database):
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def jobs(session):
    return SQLAlchemyUploadJobRepository(session)


@pytest.fixture
def write_csv(tmp_path: Path):
    """Write ``content`` as a received upload and return its path."""
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    counter = iter(range(1_000_000))

    def _write(content: str, encoding: str = "utf-8") -> str:
        path = incoming / f"{next(counter)}_upload.csv"
        path.write_bytes(content.encode(encoding))
        return str(path)

    return _write


@pytest.fixture
def fetch_rows(database: Database):
    def _fetch(table_name: str):
        with database.engine.connect() as conn:
            return [tuple(row) for row in conn.execute(text(f'SELECT * FROM "{table_name}" ORDER BY id'))]

    return _fetch


@pytest.fixture
def table_columns(database: Database):
    def _columns(table_name: str):
        return [column["name"] for column in inspect(database.engine).get_columns(table_name)]

    return _columns


@pytest.fixture
def client(settings: Settings, monkeypatch):
    """TestClient whose lifespan builds the app against the test settings."""
    monkeypatch.setenv("DATABASE_URL", settings.DATABASE_URL)
    monkeypatch.setenv("UPLOAD_DIR", settings.UPLOAD_DIR)
    get_settings.cache_clear()

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()
