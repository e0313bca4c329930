"""Upload orchestrator — imports a batch of received CSV files.

Each file runs header read → table (re)creation → row load in order, one file
at a time. The orchestrator owns every received file and deletes it exactly
once, whatever the outcome.

In ``abort`` mode the first failure stops the batch: later files are marked
skipped, their files deleted, and the error re-raised. In ``isolate`` mode
every file is attempted and the per-file results report each outcome.
"""

import os
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog

from app.config import BatchFailureMode, Settings
from app.core.exceptions import UploadError, UploadIOError
from app.domain.models.upload import JobStatus, UploadJob
from app.domain.repositories.upload_job_repository import UploadJobRepository
from app.domain.schemas.upload import FileResult
from app.infrastructure.database import Database
from app.application.services.header_reader import CsvStream, read_header
from app.application.services.name_sanitizer import table_name_for
from app.application.services.row_loader import iter_row_batches, load_rows
from app.application.services.schema_materializer import materialize_table

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReceivedFile:
    """A stored upload and the name the client gave it."""
    path: str
    original_name: str


class UploadOrchestrator:
    def __init__(self, database: Database, settings: Settings, jobs: UploadJobRepository):
        self.database = database
        self.settings = settings
        self.jobs = jobs

    def process(self, files: Sequence[ReceivedFile]) -> List[FileResult]:
        """Import ``files`` in order and return one result per file."""
        results: List[FileResult] = []
        logger.info("Processing upload batch", files=len(files), mode=self.settings.BATCH_FAILURE_MODE.value)

        for index, received in enumerate(files):
            try:
                results.append(self._import(received))
            except Exception:
                self._skip(files[index + 1:])
                raise

        return results

    def _import(self, received: ReceivedFile) -> FileResult:
        """Run one file and delete it, whatever happens to its bookkeeping.

        In ``isolate`` mode an ``UploadError`` becomes a failed result; every
        other failure propagates.
        """
        isolate = self.settings.BATCH_FAILURE_MODE == BatchFailureMode.ISOLATE
        job = None
        try:
            job = self.jobs.register(os.path.basename(received.path), received.original_name)
            self._load(job, received)
        except UploadError as exc:
            self._discard(received.path, strict=False)
            if isolate:
                return _result(job, error=exc.message)
            raise
        except Exception:
            self._discard(received.path, strict=False)
            raise

        try:
            self._discard(received.path)
        except UploadIOError as exc:
            self.jobs.update(job, {"error_message": exc.message})
            if isolate:
                return _result(job, error=exc.message)
            raise

        return _result(job)

    def _load(self, job: UploadJob, received: ReceivedFile) -> None:
        log = logger.bind(job_id=job.id, filename=received.original_name)
        settings = self.settings
        engine = self.database.engine
        deadline = None
        if settings.FILE_TIMEOUT_SECONDS > 0:
            deadline = time.monotonic() + settings.FILE_TIMEOUT_SECONDS

        try:
            table_name = table_name_for(received.original_name, settings.SANITIZER_VARIANT)
            self.jobs.update(job, {"table_name": table_name})

            try:
                handle = open(received.path, "r", encoding=settings.CSV_ENCODING, newline="")
            except OSError as e:
                raise UploadIOError(f"Cannot open uploaded file '{received.original_name}': {e}") from e

            with handle:
                stream = CsvStream(handle, delimiter=settings.CSV_DELIMITER, chunksize=settings.INSERT_BATCH_SIZE)
                header = read_header(
                    stream,
                    variant=settings.SANITIZER_VARIANT,
                    policy=settings.COLUMN_COLLISION_POLICY,
                )
                self.jobs.transition(job, JobStatus.HEADER_EXTRACTED, columns=list(header.columns))

                materialize_table(engine, table_name, header.columns)
                self.jobs.transition(job, JobStatus.SCHEMA_CREATED)

                self.jobs.transition(job, JobStatus.LOADING)
                row_count = load_rows(
                    engine,
                    table_name,
                    header.columns,
                    iter_row_batches(stream, header),
                    deadline=deadline,
                )
        except Exception as exc:
            message = exc.message if isinstance(exc, UploadError) else str(exc)
            log.error("Upload failed", table=job.table_name, error=message)
            self.jobs.transition(job, JobStatus.ROLLED_BACK, error_message=message)
            raise

        # The rows are committed from here on; a bookkeeping failure must not
        # mark the job rolled back
        self.jobs.transition(job, JobStatus.COMMITTED, row_count=row_count)
        log.info("Upload committed", table=table_name, rows=row_count)

    def _skip(self, files: Sequence[ReceivedFile]) -> None:
        """Delete and record files never started because the batch was aborted."""
        for received in files:
            self._discard(received.path, strict=False)

        for received in files:
            job = self.jobs.register(os.path.basename(received.path), received.original_name)
            self.jobs.transition(
                job,
                JobStatus.SKIPPED,
                error_message="Skipped: an earlier file in the batch failed",
            )
            logger.info("Upload skipped", job_id=job.id, filename=received.original_name)

    def _discard(self, path: str, strict: bool = True) -> None:
        """Delete a received file.

        With ``strict`` a failure raises ``UploadIOError``; otherwise it is
        only logged, so it cannot mask the error already being raised.
        """
        try:
            os.remove(path)
        except OSError as e:
            logger.error("Failed to delete uploaded file", path=path, error=str(e))
            if strict:
                raise UploadIOError(f"Failed to delete uploaded file '{path}': {e}") from e


def _result(job: UploadJob, error: Optional[str] = None) -> FileResult:
    return FileResult(
        job_id=job.id,
        filename=job.original_name,
        table_name=job.table_name,
        columns=job.columns or [],
        row_count=job.row_count or 0,
        status=job.status,
        error=error,
    )
