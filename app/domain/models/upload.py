"""Upload job history — one row per received CSV file."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class JobStatus(str, Enum):
    RECEIVED = "received"
    HEADER_EXTRACTED = "header_extracted"
    SCHEMA_CREATED = "schema_created"
    LOADING = "loading"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"  # never started, an earlier file aborted the batch


TERMINAL_STATUSES = frozenset({JobStatus.COMMITTED, JobStatus.ROLLED_BACK, JobStatus.SKIPPED})


class UploadJob(Base):
    __tablename__ = "upload_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(500), nullable=False)
    original_name = Column(String(500), nullable=False)
    table_name = Column(String(255), nullable=True)
    columns = Column(JSON, nullable=True)
    row_count = Column(Integer, default=0)
    status = Column(String(50), default=JobStatus.RECEIVED.value)
    error_message = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status) in TERMINAL_STATUSES

    def __repr__(self):
        return f"<UploadJob {self.original_name} -> {self.table_name} [{self.status}]>"
