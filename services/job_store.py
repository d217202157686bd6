import asyncio
import time
import uuid as uuid_module
from datetime import datetime, timezone
from typing import Dict, Optional

from config.constants import PROGRESS_COMPLETE
from config.logger import get_logger
from models.job import Job, JobStatus, ProgressEvent
from models.track import JobResult

logger = get_logger(__name__)

_CLOSE = object()


class ProgressChannel:
    """Queue of progress events for one job, drained by the job's writer task"""

    def __init__(self, task_id: str):
        self.task_id = task_id
        self._queue: asyncio.Queue = asyncio.Queue()

    def progress(self, progress: Optional[int] = None, download_progress: Optional[int] = None):
        self._queue.put_nowait(
            ProgressEvent(progress=progress, download_progress=download_progress)
        )

    def restart_download(self) -> None:
        """Start a new download phase; downloadProgress counts up from zero again"""
        self._queue.put_nowait(ProgressEvent(download_progress=0, restart_download=True))

    def complete(self, result: JobResult) -> None:
        if result is None:
            raise ValueError("A completed job requires a result")
        self._queue.put_nowait(
            ProgressEvent(status=JobStatus.COMPLETED, result=result, progress=PROGRESS_COMPLETE)
        )

    def fail(self, error: str) -> None:
        if not error:
            raise ValueError("A failed job requires an error message")
        self._queue.put_nowait(ProgressEvent(status=JobStatus.FAILED, error=error))

    def close(self) -> None:
        self._queue.put_nowait(_CLOSE)

    async def get(self):
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def flush(self) -> None:
        await self._queue.join()


def _clamp(value: int) -> int:
    return max(0, min(PROGRESS_COMPLETE, int(value)))


def apply_event(job: Job, event: ProgressEvent) -> bool:
    """
    Apply one event to a job record.

    Progress fields only move forward, except that a restart event returns
    download progress to zero for a new download phase. Events for a job that
    already reached a terminal state are dropped.

    Returns:
        True if the event was applied
    """
    if job.status.is_terminal:
        logger.debug(
            "Ignoring event for finished job", task_id=job.task_id, status=job.status.value
        )
        return False

    if event.progress is not None:
        job.progress = max(job.progress, _clamp(event.progress))
    if event.restart_download:
        job.download_progress = 0
    if event.download_progress is not None:
        job.download_progress = max(job.download_progress, _clamp(event.download_progress))

    if event.status is JobStatus.COMPLETED:
        job.result = event.result
        job.error = None
        job.progress = PROGRESS_COMPLETE
        job.status = JobStatus.COMPLETED
        job.completed_at = time.time()
    elif event.status is JobStatus.FAILED:
        job.error = event.error
        job.result = None
        job.status = JobStatus.FAILED
        job.completed_at = time.time()

    return True


class JobStore:
    """In-memory job records keyed by task id"""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._channels: Dict[str, ProgressChannel] = {}
        self._writers: Dict[str, asyncio.Task] = {}

    def create(self, source_url: str) -> Job:
        task_id = str(uuid_module.uuid4())
        job = Job(
            task_id=task_id,
            source_url=source_url,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._jobs[task_id] = job
        return job

    def get(self, task_id: str) -> Optional[Job]:
        return self._jobs.get(task_id)

    def start(self, task_id: str) -> ProgressChannel:
        """Move a queued job to processing and spawn its writer task"""
        job = self._jobs.get(task_id)
        if job is None:
            raise KeyError(task_id)
        if job.status is not JobStatus.QUEUED:
            raise RuntimeError(f"Job {task_id} already started ({job.status.value})")

        job.status = JobStatus.PROCESSING
        channel = ProgressChannel(task_id)
        self._channels[task_id] = channel
        self._writers[task_id] = asyncio.create_task(self._write(job, channel))
        return channel

    async def _write(self, job: Job, channel: ProgressChannel) -> None:
        while True:
            event = await channel.get()
            try:
                if event is _CLOSE:
                    return
                apply_event(job, event)
            finally:
                channel.task_done()

    async def finish(self, task_id: str) -> None:
        """Close a job's channel once every queued event has been applied"""
        channel = self._channels.pop(task_id, None)
        writer = self._writers.pop(task_id, None)
        if channel is None or writer is None:
            return

        channel.close()
        await writer

    def active_count(self) -> int:
        return sum(1 for job in self._jobs.values() if not job.status.is_terminal)

    def __len__(self) -> int:
        return len(self._jobs)
