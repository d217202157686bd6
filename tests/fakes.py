"""In-memory collaborators used by the test suite."""

import asyncio
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from models.track import AssetInfo, AudioMetadata, TrackMatch
from utils.exceptions import AssetInfoError, FullFetchError, NoMatchError, WindowFetchError

CLIP_SIZE = 4096


def clip_bytes(start: float) -> bytes:
    """Window audio whose content records where the window started"""
    return f"start={start:g};".encode().ljust(CLIP_SIZE, b"\0")


def clip_start(audio: bytes) -> float:
    header = audio.split(b";", 1)[0].decode()
    return float(header.split("=", 1)[1])


def make_match(title: str, artist: str, **kwargs) -> TrackMatch:
    return TrackMatch(title=title, artist=artist, **kwargs)


class FakeAssetSource:
    def __init__(
        self,
        info: Optional[AssetInfo] = None,
        failing_windows: Optional[Iterable[float]] = None,
        fail_all_windows: bool = False,
        full_pieces: int = 0,
        fail_full: bool = False,
        info_error: Optional[str] = None,
        window_delay: float = 0,
        crashing_windows: Optional[Iterable[float]] = None,
        full_progress: Iterable[float] = (25, 60, 100),
    ):
        self.info = info or AssetInfo(duration=600, title="Mixtape", platform="youtube")
        self.failing_windows = set(failing_windows or ())
        self.fail_all_windows = fail_all_windows
        self.full_pieces = full_pieces
        self.fail_full = fail_full
        self.info_error = info_error
        self.window_delay = window_delay
        self.crashing_windows = set(crashing_windows or ())
        self.full_progress = list(full_progress)

        self.info_calls: List[str] = []
        self.window_calls: List[tuple] = []
        self.full_calls: List[str] = []
        self.split_calls: List[Path] = []

    async def get_info(self, url: str) -> AssetInfo:
        self.info_calls.append(url)
        if self.info_error:
            raise AssetInfoError(self.info_error)
        return self.info

    async def fetch_window(self, url: str, start: float, end: float, dest: Path) -> Path:
        self.window_calls.append((start, end))
        if self.window_delay:
            await asyncio.sleep(self.window_delay)
        if self.fail_all_windows or start in self.failing_windows:
            raise WindowFetchError(f"window at {start} unavailable")
        if start in self.crashing_windows:
            raise KeyError(f"extractor bug at {start}")

        dest = dest.with_suffix(".mp3")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(clip_bytes(start))
        return dest

    async def fetch_full(self, url: str, dest_dir: Path, on_progress=None) -> Path:
        self.full_calls.append(url)
        if self.fail_full:
            raise FullFetchError("full download unavailable")
        for percent in self.full_progress:
            if on_progress:
                on_progress(percent)

        path = dest_dir / "full.mp3"
        path.write_bytes(b"\0" * CLIP_SIZE)
        return path

    async def split_full(self, path: Path, window_length: int) -> List[Path]:
        self.split_calls.append(path)
        pieces = []
        for i in range(self.full_pieces):
            piece = path.parent / f"full_segment_{i:03d}.mp3"
            piece.write_bytes(clip_bytes(i * window_length))
            pieces.append(piece)
        return pieces

    async def probe_audio(self, path: Path) -> AudioMetadata:
        return AudioMetadata(
            format="mp3",
            file_size=path.stat().st_size,
            bitrate=96000,
            sample_rate=44100,
            channels=2,
            codec="mp3",
        )


class FakeRecognizer:
    """Recognizer that answers from a callable and records concurrency"""

    def __init__(
        self,
        matcher: Optional[Callable[[float], Optional[TrackMatch]]] = None,
        delay: float = 0,
    ):
        self.matcher = matcher or (lambda start: None)
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def identify(self, audio: bytes) -> TrackMatch:
        self.calls += 1
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            match = self.matcher(clip_start(audio))
        finally:
            self.in_flight -= 1

        if match is None:
            raise NoMatchError("no match")
        return match

    async def close(self) -> None:
        self.closed = True
