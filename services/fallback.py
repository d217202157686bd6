import asyncio
from pathlib import Path
from typing import Callable, List, Optional

from config.logger import get_logger
from models.job import PipelineMode
from models.track import SegmentWindow
from services.asset_source import AssetSource, DownloadProgressCallback
from services.segment_fetcher import ProgressCallback, SegmentFetcher
from utils.exceptions import FullFetchError, SegmentPathExhaustedError, WindowFetchError

logger = get_logger(__name__)


class FallbackController:
    """
    Chooses how audio for one job is acquired.

    The segment path is tried first. When it yields nothing, the whole asset
    is downloaded once and split locally. The switch happens at most once per
    controller and never goes back.
    """

    def __init__(
        self,
        fetcher: SegmentFetcher,
        source: AssetSource,
        window_length: int,
        full_fetch_timeout: int,
        split_timeout: int,
    ):
        self.fetcher = fetcher
        self.source = source
        self.window_length = window_length
        self.full_fetch_timeout = full_fetch_timeout
        self.split_timeout = split_timeout
        self.mode: Optional[PipelineMode] = None
        self.full_audio: Optional[Path] = None

    async def acquire(
        self,
        url: str,
        duration: float,
        windows: List[SegmentWindow],
        job_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
        on_full_start: Optional[Callable[[], None]] = None,
        on_full_progress: Optional[DownloadProgressCallback] = None,
    ) -> List[SegmentWindow]:
        if self.mode is None:
            try:
                fetched = await self.fetcher.fetch(url, windows, job_dir, on_progress)
                self.mode = PipelineMode.SEGMENT
                return fetched
            except (SegmentPathExhaustedError, WindowFetchError, OSError) as e:
                logger.warning("Segment path exhausted, switching to full download", error=str(e))

        return await self._full_path(url, duration, job_dir, on_full_start, on_full_progress)

    def _enter_full(self) -> None:
        if self.mode is PipelineMode.FULL_FALLBACK:
            raise RuntimeError("Full download fallback already used for this job")
        self.mode = PipelineMode.FULL_FALLBACK

    async def _full_path(
        self,
        url: str,
        duration: float,
        job_dir: Path,
        on_start: Optional[Callable[[], None]] = None,
        on_progress: Optional[DownloadProgressCallback] = None,
    ) -> List[SegmentWindow]:
        self._enter_full()
        if on_start:
            on_start()

        try:
            full_path = await asyncio.wait_for(
                self.source.fetch_full(url, job_dir, on_progress),
                timeout=self.full_fetch_timeout,
            )
        except asyncio.TimeoutError as e:
            raise FullFetchError(
                f"Full download timed out after {self.full_fetch_timeout}s"
            ) from e
        except OSError as e:
            raise FullFetchError(f"Full download failed: {e}") from e

        self.full_audio = full_path

        try:
            pieces = await asyncio.wait_for(
                self.source.split_full(full_path, self.window_length),
                timeout=self.split_timeout,
            )
        except asyncio.TimeoutError as e:
            raise FullFetchError(f"Splitting timed out after {self.split_timeout}s") from e
        except OSError as e:
            raise FullFetchError(f"Splitting failed: {e}") from e

        if not pieces:
            raise FullFetchError("Splitting produced no windows")

        windows = []
        for i, piece in enumerate(pieces):
            start = i * self.window_length
            end = min((i + 1) * self.window_length, duration)
            if end <= start:
                end = start + self.window_length
            windows.append(SegmentWindow(index=i, start=start, end=end, audio_path=piece))

        logger.info("Full download split into windows", windows=len(windows))
        return windows
