"""Upload API routes — import CSV files into database tables."""

import os
import shutil
import uuid
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.config import Settings, get_settings
from app.core.exceptions import UploadIOError
from app.domain.repositories.upload_job_repository import UploadJobRepository
from app.domain.schemas.upload import UploadBatchResponse, UploadJobRead
from app.interfaces.deps import get_upload_job_repository, get_upload_orchestrator
from app.application.services.upload_orchestrator import ReceivedFile, UploadOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/uploads", tags=["Uploads"])


def _store_files(files: List[UploadFile], upload_dir: str) -> List[ReceivedFile]:
    """Stream each upload to ``upload_dir`` under a unique name.

    On failure every file written so far, including a partial one, is removed.
    """
    os.makedirs(upload_dir, exist_ok=True)
    received: List[ReceivedFile] = []
    written: List[str] = []

    try:
        for file in files:
            original_name = file.filename or "upload.csv"
            safe_name = f"{uuid.uuid4().hex}_{os.path.basename(original_name)}"
            file_path = os.path.join(upload_dir, safe_name)
            with open(file_path, "wb") as f:
                written.append(file_path)
                shutil.copyfileobj(file.file, f)
            received.append(ReceivedFile(path=file_path, original_name=original_name))
    except OSError as e:
        for path in written:
            try:
                os.remove(path)
            except OSError:
                logger.warning("Failed to delete uploaded file", path=path)
        raise UploadIOError(f"Failed to store uploaded file: {e}") from e

    return received


@router.post("", response_model=UploadBatchResponse)
def upload_files(
    response: Response,
    files: Optional[List[UploadFile]] = File(None),
    settings: Settings = Depends(get_settings),
    orchestrator: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")
    if len(files) > settings.MAX_FILES_PER_REQUEST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files (max {settings.MAX_FILES_PER_REQUEST})",
        )

    logger.info("Uploaded files", filenames=[f.filename for f in files])
    received = _store_files(files, settings.UPLOAD_DIR)

    # In abort mode the first failure propagates to the global handler as a 500
    results = orchestrator.process(received)

    failed = [r for r in results if not r.ok]
    if not failed:
        return UploadBatchResponse(message="All CSV files imported successfully", results=results)

    response.status_code = status.HTTP_207_MULTI_STATUS
    return UploadBatchResponse(
        message=f"{len(results) - len(failed)} of {len(results)} CSV files imported",
        results=results,
    )


@router.get("", response_model=List[UploadJobRead])
def list_uploads(jobs: UploadJobRepository = Depends(get_upload_job_repository)):
    return [UploadJobRead.model_validate(job) for job in jobs.list(limit=50)]


@router.get("/{job_id}", response_model=UploadJobRead)
def get_upload(job_id: int, jobs: UploadJobRepository = Depends(get_upload_job_repository)):
    job = jobs.get_by_id(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Upload not found")
    return UploadJobRead.model_validate(job)
