import time
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from slowapi import Limiter
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.logger import get_logger
from models.job import Job, JobStatus
from services.dependencies import Services
from utils.exceptions import ArtifactAccessError, AudioExtractionError, ValidationError
from utils.validation import validate_task_id

logger = get_logger(__name__)


class ExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: Optional[str] = Field(default=None, alias="videoUrl")


def register_error_handlers(app: FastAPI):
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(_: Request, exc: ValidationError):
        logger.warning("Validation error: %s", str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        logger.warning("Malformed request body", errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Video URL is required"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(AudioExtractionError)
    async def extraction_error_handler(_: Request, exc: AudioExtractionError):
        logger.error("Unhandled extraction error: %s", str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(_: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


def register_routes(app: FastAPI, config, services: Services, limiter: Limiter):
    def _get_job(task_id: str) -> Job:
        if not validate_task_id(task_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid task ID format"
            )

        job = services.job_store.get(task_id)
        if not job:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        return job

    def _health_payload() -> dict:
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "acrcloudConfigured": config.recognition.configured,
            "mediaToolsAvailable": services.tools.available if services.tools else None,
            "activeJobs": services.job_store.active_count(),
        }

    @app.get("/")
    async def read_root():
        return {"message": "Media Track Finder API", **_health_payload()}

    @app.get("/health")
    async def health_check():
        return _health_payload()

    @app.post("/api/extract")
    @limiter.limit(config.rate_limits.extract)
    async def extract(request: Request, body: ExtractRequest):
        job = services.pipeline.submit(body.video_url)

        return {
            "taskId": job.task_id,
            "status": JobStatus.PROCESSING.value,
            "message": "Track extraction started",
        }

    @app.get("/api/status/{task_id}")
    async def get_job_status(task_id: str):
        return _get_job(task_id).status_view()

    @app.get("/api/result/{task_id}")
    async def get_job_result(task_id: str):
        job = _get_job(task_id)

        if job.status is JobStatus.COMPLETED:
            return {"taskId": task_id, "status": job.status.value, "result": job.result.to_dict()}

        if job.status is JobStatus.FAILED:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"taskId": task_id, "status": job.status.value, "error": job.error},
            )

        return {
            "taskId": task_id,
            "status": job.status.value,
            "progress": job.progress,
            "message": "Still processing",
        }

    @app.get("/api/download/{filename:path}")
    async def download_artifact(filename: str):
        try:
            path = services.artifacts.resolve_download(filename)
        except ArtifactAccessError as e:
            logger.warning("Rejected artifact download", filename=filename)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Access denied"
            ) from e
        except FileNotFoundError as e:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="File not found"
            ) from e

        return FileResponse(path, filename=path.name)
