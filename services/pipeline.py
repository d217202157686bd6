import asyncio
import time
from dataclasses import replace
from typing import Set

from config.config import PipelineSettings
from config.constants import (
    PROGRESS_FULL_FETCH_END,
    PROGRESS_METADATA_DONE,
    PROGRESS_RECOGNITION_END,
    PROGRESS_RECOGNITION_START,
    PROGRESS_SEGMENT_FETCH_END,
)
from config.logger import bind_task_context, get_logger
from models.job import Job, PipelineMode
from models.track import AssetInfo, JobResult, ProcessingMetrics
from services.artifact_store import LocalArtifactStore
from services.asset_source import AssetSource
from services.deduplicator import deduplicate_tracks
from services.dispatcher import RecognitionDispatcher
from services.fallback import FallbackController
from services.job_store import JobStore, ProgressChannel
from services.metadata_cache import MetadataCache
from services.segment_fetcher import SegmentFetcher
from services.segment_planner import plan_segments
from utils.exceptions import ArtifactError, AssetInfoError, AudioExtractionError
from utils.validation import validate_media_url

logger = get_logger(__name__)


def _band(start: int, end: int, done: int, total: int) -> int:
    if total <= 0:
        return end
    return start + round((end - start) * done / total)


class ExtractionPipeline:
    """Runs one extraction job from URL to compiled track list"""

    def __init__(
        self,
        settings: PipelineSettings,
        job_store: JobStore,
        cache: MetadataCache,
        source: AssetSource,
        artifacts: LocalArtifactStore,
        dispatcher: RecognitionDispatcher,
    ):
        self.settings = settings
        self.job_store = job_store
        self.cache = cache
        self.source = source
        self.artifacts = artifacts
        self.dispatcher = dispatcher
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, raw_url) -> Job:
        """
        Validate a URL, register its job and start processing in the background.

        Raises:
            ValidationError: If the URL is missing or malformed; no job is created
        """
        url = validate_media_url(raw_url)

        job = self.job_store.create(url)
        channel = self.job_store.start(job.task_id)

        task = asyncio.create_task(self.run(job, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("Accepted extraction job", task_id=job.task_id, url=url)
        return job

    async def _resolve_info(self, url: str) -> AssetInfo:
        info = await self.cache.get_or_resolve(url, self.source.get_info)

        if info.duration <= 0:
            raise AssetInfoError("Could not determine media duration")
        if info.duration > self.settings.max_asset_duration:
            raise AssetInfoError(
                f"Video too long ({info.duration:.0f}s). "
                f"Maximum allowed: {self.settings.max_asset_duration}s"
            )
        return info

    async def run(self, job: Job, channel: ProgressChannel) -> None:
        bind_task_context(job.task_id)
        started = time.monotonic()

        try:
            result = await self._process(job, channel, started)
            channel.complete(result)
            logger.info(
                "Extraction completed",
                tracks_found=result.metrics.tracks_found,
                processing_time=result.metrics.processing_time,
                mode=result.metrics.mode,
            )
        except AudioExtractionError as e:
            logger.warning("Extraction failed", error=str(e), error_type=type(e).__name__)
            channel.fail(str(e))
            self._discard_artifacts(job)
        except Exception as e:
            logger.error("Unexpected extraction failure", error=str(e), exc_info=True)
            channel.fail("Internal processing error")
            self._discard_artifacts(job)
        finally:
            await self.job_store.finish(job.task_id)

    def _discard_artifacts(self, job: Job) -> None:
        job_dir = self.artifacts.root / job.task_id
        try:
            self.artifacts.delete(job_dir)
        except ArtifactError as e:
            logger.warning("Could not remove artifacts of failed job", error=str(e))

    async def _process(self, job: Job, channel: ProgressChannel, started: float) -> JobResult:
        info = await self._resolve_info(job.source_url)
        channel.progress(progress=PROGRESS_METADATA_DONE)
        logger.info("Asset info resolved", title=info.title, duration=info.duration)

        windows = plan_segments(
            info.duration, self.settings.window_length, self.settings.window_count
        )
        job_dir = self.artifacts.job_dir(job.task_id)

        def _on_fetch(done: int, total: int) -> None:
            channel.progress(
                progress=_band(PROGRESS_METADATA_DONE, PROGRESS_SEGMENT_FETCH_END, done, total),
                download_progress=round(100 * done / total),
            )

        def _on_full_fetch(percent: float) -> None:
            channel.progress(
                progress=_band(PROGRESS_SEGMENT_FETCH_END, PROGRESS_FULL_FETCH_END, percent, 100),
                download_progress=round(percent),
            )

        controller = FallbackController(
            fetcher=SegmentFetcher(self.source, self.settings.window_fetch_timeout),
            source=self.source,
            window_length=self.settings.window_length,
            full_fetch_timeout=self.settings.full_fetch_timeout,
            split_timeout=self.settings.split_timeout,
        )
        fetched = await controller.acquire(
            job.source_url,
            info.duration,
            windows,
            job_dir,
            on_progress=_on_fetch,
            on_full_start=channel.restart_download,
            on_full_progress=_on_full_fetch,
        )

        if controller.mode is PipelineMode.FULL_FALLBACK:
            channel.progress(progress=PROGRESS_FULL_FETCH_END, download_progress=100)
        channel.progress(progress=PROGRESS_RECOGNITION_START)

        def _on_recognition(done: int, total: int) -> None:
            channel.progress(
                progress=_band(PROGRESS_RECOGNITION_START, PROGRESS_RECOGNITION_END, done, total)
            )

        outcomes = await self.dispatcher.dispatch(fetched, _on_recognition)
        tracks = deduplicate_tracks(outcomes)

        analyzed = controller.full_audio or fetched[0].audio_path
        audio = replace(
            await self.source.probe_audio(analyzed),
            audio_file=self.artifacts.relative_name(analyzed),
        )

        metrics = ProcessingMetrics(
            processing_time=round(time.monotonic() - started, 2),
            windows_analyzed=len(fetched),
            tracks_found=len(tracks),
            mode=controller.mode.value,
        )
        artifacts = [self.artifacts.relative_name(w.audio_path) for w in fetched]

        return JobResult(
            asset=info, tracks=tracks, metrics=metrics, artifacts=artifacts, audio=audio
        )
