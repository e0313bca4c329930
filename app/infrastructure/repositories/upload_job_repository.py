"""
SQLAlchemy implementation of the Upload Job Repository.

Every write commits immediately: a job row reflects the last stage a file
reached even when the import of that file is rolled back afterwards.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.models.upload import TERMINAL_STATUSES, JobStatus, UploadJob

# Matches the width of UploadJob.error_message
MAX_ERROR_LENGTH = 1000


class SQLAlchemyUploadJobRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, id: int) -> Optional[UploadJob]:
        return self.db.get(UploadJob, id)

    def list(self, skip: int = 0, limit: int = 100) -> List[UploadJob]:
        return (
            self.db.query(UploadJob)
            .order_by(UploadJob.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def register(self, filename: str, original_name: str) -> UploadJob:
        job = UploadJob(
            filename=filename,
            original_name=original_name,
            status=JobStatus.RECEIVED.value,
            row_count=0,
        )
        self.db.add(job)
        self._commit()
        return job

    def update(self, job: UploadJob, fields: Dict[str, Any]) -> UploadJob:
        for field, value in fields.items():
            if hasattr(job, field):
                setattr(job, field, value)

        self.db.add(job)
        self._commit()
        return job

    def transition(
        self,
        job: UploadJob,
        status: JobStatus,
        error_message: Optional[str] = None,
        **fields,
    ) -> UploadJob:
        fields["status"] = status.value
        if error_message is not None:
            fields["error_message"] = error_message[:MAX_ERROR_LENGTH]
        if status in TERMINAL_STATUSES:
            fields["finished_at"] = datetime.now(timezone.utc)
        return self.update(job, fields)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            # Leave the session usable for the next bookkeeping write
            self.db.rollback()
            raise
