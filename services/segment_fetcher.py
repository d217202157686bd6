import asyncio
from pathlib import Path
from typing import Callable, List, Optional

from config.logger import get_logger
from models.track import SegmentWindow
from services.asset_source import AssetSource
from utils.exceptions import SegmentPathExhaustedError, WindowFetchError

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


class SegmentFetcher:
    """Fetches planned windows concurrently; one bad window never sinks the rest"""

    def __init__(self, source: AssetSource, timeout: int):
        self.source = source
        self.timeout = timeout

    async def fetch(
        self,
        url: str,
        windows: List[SegmentWindow],
        job_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[SegmentWindow]:
        """
        Fetch every window in parallel.

        Returns:
            Successfully fetched windows ordered by index

        Raises:
            SegmentPathExhaustedError: If no window could be fetched
        """
        total = len(windows)
        done = 0

        async def _fetch_one(window: SegmentWindow) -> SegmentWindow:
            nonlocal done
            dest = job_dir / f"segment_{window.index:03d}.mp3"
            try:
                window.audio_path = await asyncio.wait_for(
                    self.source.fetch_window(url, window.start, window.end, dest),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                window.error = f"Timed out after {self.timeout}s"
                logger.warning("Window fetch timed out", window=window.index, timeout=self.timeout)
            except (WindowFetchError, OSError) as e:
                window.error = str(e)
                logger.warning("Window fetch failed", window=window.index, error=str(e))
            except Exception as e:
                window.error = f"Unexpected error: {e}"
                logger.error(
                    "Unexpected window fetch failure",
                    window=window.index,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                done += 1
                if on_progress:
                    on_progress(done, total)
            return window

        results = await asyncio.gather(*(_fetch_one(window) for window in windows))

        fetched = sorted((w for w in results if w.fetched), key=lambda w: w.index)
        logger.info("Segment fetch finished", fetched=len(fetched), planned=total)

        if not fetched:
            raise SegmentPathExhaustedError(f"All {total} planned windows failed to fetch")
        return fetched
