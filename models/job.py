from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from models.track import JobResult


class JobStatus(Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class PipelineMode(Enum):
    SEGMENT = "segment"
    FULL_FALLBACK = "full_fallback"


@dataclass
class Job:
    task_id: str
    source_url: str
    created_at: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    download_progress: int = 0
    error: Optional[str] = None
    result: Optional[JobResult] = None
    completed_at: Optional[float] = None

    def status_view(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "progress": self.progress,
            "downloadProgress": self.download_progress,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """One mutation request for a job, applied by the job's single writer"""

    progress: Optional[int] = None
    download_progress: Optional[int] = None
    restart_download: bool = False
    status: Optional[JobStatus] = None
    result: Optional[JobResult] = None
    error: Optional[str] = None
