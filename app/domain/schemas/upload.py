"""Pydantic schemas for upload jobs and batch results."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class UploadJobRead(BaseModel):
    id: int
    filename: str
    original_name: str
    table_name: Optional[str] = None
    columns: Optional[List[str]] = None
    row_count: int
    status: str
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FileResult(BaseModel):
    """Outcome of importing one file of a batch."""
    job_id: Optional[int] = None
    filename: str
    table_name: Optional[str] = None
    columns: List[str] = []
    row_count: int = 0
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status == "committed"


class UploadBatchResponse(BaseModel):
    message: str
    results: List[FileResult]
