"""
Upload Job Repository Interface.
Bookkeeping of every received file and its lifecycle.
"""

from typing import Any, Dict, List, Optional, Protocol

from app.domain.models.upload import JobStatus, UploadJob


class UploadJobRepository(Protocol):
    """Data access for UploadJob rows."""

    def get_by_id(self, id: int) -> Optional[UploadJob]:
        ...

    def list(self, skip: int = 0, limit: int = 100) -> List[UploadJob]:
        """Newest jobs first."""
        ...

    def register(self, filename: str, original_name: str) -> UploadJob:
        """Record a newly received file in the `received` state."""
        ...

    def update(self, job: UploadJob, fields: Dict[str, Any]) -> UploadJob:
        ...

    def transition(
        self,
        job: UploadJob,
        status: JobStatus,
        error_message: Optional[str] = None,
        **fields,
    ) -> UploadJob:
        """Move a job to a new status, stamping terminal ones as finished."""
        ...
