import asyncio
from typing import Callable, List, Optional

from config.config import RecognitionSettings
from config.logger import get_logger
from models.track import IdentifiedTrack, SegmentWindow
from services.artifact_store import LocalArtifactStore
from services.recognizer import Recognizer
from utils.exceptions import ArtifactError, PayloadSizeError, RecognitionError

logger = get_logger(__name__)


class RecognitionDispatcher:
    """
    Submits fetched windows to the recognizer.

    One dispatcher is shared by every job so its semaphore caps in-flight
    recognition calls process-wide. Within a job, windows go out in batches of
    at most `concurrency` with a short pause between batches.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        store: LocalArtifactStore,
        settings: RecognitionSettings,
    ):
        self.recognizer = recognizer
        self.store = store
        self.concurrency = settings.concurrency
        self.batch_delay = settings.batch_delay_ms / 1000
        self.min_bytes = settings.min_bytes
        self.max_bytes = settings.max_bytes
        self._semaphore = asyncio.Semaphore(settings.concurrency)

    def _check_payload(self, audio: bytes) -> None:
        size = len(audio)
        if size == 0:
            raise PayloadSizeError("Audio payload is empty")
        if size < self.min_bytes:
            raise PayloadSizeError(f"Audio payload too small ({size} bytes)")
        if size > self.max_bytes:
            raise PayloadSizeError(f"Audio payload too large ({size} bytes)")

    async def _recognize(self, window: SegmentWindow) -> Optional[IdentifiedTrack]:
        try:
            audio = await asyncio.to_thread(self.store.read, window.audio_path)
            self._check_payload(audio)
            async with self._semaphore:
                match = await self.recognizer.identify(audio)
        except RecognitionError as e:
            logger.info(
                "No recognition for window",
                window=window.index,
                reason=type(e).__name__,
                detail=str(e),
            )
            return None
        except ArtifactError as e:
            logger.warning("Window audio unreadable", window=window.index, error=str(e))
            return None
        except Exception as e:
            logger.error(
                "Unexpected recognition failure", window=window.index, error=str(e), exc_info=True
            )
            return None

        logger.info(
            "Identified track",
            window=window.index,
            title=match.title,
            artist=match.artist,
        )
        return IdentifiedTrack(match=match, start=window.start, end=window.end)

    async def dispatch(
        self,
        windows: List[SegmentWindow],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[Optional[IdentifiedTrack]]:
        """Recognize every window, returning one outcome per window in input order"""
        total = len(windows)
        outcomes: List[Optional[IdentifiedTrack]] = []

        batch_size = min(self.concurrency, total) or 1
        for offset in range(0, total, batch_size):
            if offset:
                await asyncio.sleep(self.batch_delay)

            batch = windows[offset : offset + batch_size]
            outcomes.extend(await asyncio.gather(*(self._recognize(w) for w in batch)))

            if on_progress:
                on_progress(len(outcomes), total)

        logger.info(
            "Recognition finished",
            windows=total,
            matched=sum(1 for outcome in outcomes if outcome is not None),
        )
        return outcomes
