import asyncio
import json
import shutil
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
from urllib.parse import urlparse

import yt_dlp
from yt_dlp.utils import DownloadError, ExtractorError, download_range_func

from config.config import PipelineSettings
from config.constants import AUDIO_BITRATE, DIRECT_MEDIA_EXTENSIONS, YTDLP_SOCKET_TIMEOUT_SECONDS
from config.logger import get_logger
from models.track import AssetInfo, AudioMetadata
from utils.exceptions import AssetInfoError, FullFetchError, WindowFetchError

logger = get_logger(__name__)

FULL_AUDIO_STEM = "full"

DownloadProgressCallback = Callable[[float], None]

PLATFORM_HOSTS = (
    ("youtube", ("youtube.com", "youtu.be")),
    ("vimeo", ("vimeo.com",)),
    ("tiktok", ("tiktok.com",)),
    ("instagram", ("instagram.com",)),
)


class AssetSource(Protocol):
    async def get_info(self, url: str) -> AssetInfo: ...

    async def fetch_window(self, url: str, start: float, end: float, dest: Path) -> Path: ...

    async def fetch_full(
        self, url: str, dest_dir: Path, on_progress: Optional[DownloadProgressCallback] = None
    ) -> Path: ...

    async def split_full(self, path: Path, window_length: int) -> List[Path]: ...

    async def probe_audio(self, path: Path) -> AudioMetadata: ...


@dataclass(frozen=True)
class MediaTools:
    """Locations of the external media binaries, looked up once at startup"""

    ffmpeg: Optional[str]
    ffprobe: Optional[str]

    @classmethod
    def resolve(cls) -> "MediaTools":
        tools = cls(ffmpeg=shutil.which("ffmpeg"), ffprobe=shutil.which("ffprobe"))
        if tools.ffmpeg is None:
            logger.warning("ffmpeg not found on PATH - audio extraction will fail")
        if tools.ffprobe is None:
            logger.warning("ffprobe not found on PATH - direct media probing disabled")
        return tools

    @property
    def available(self) -> bool:
        return self.ffmpeg is not None and self.ffprobe is not None


def detect_platform(url: str) -> str:
    if is_direct_media(url):
        return "direct"

    host = (urlparse(url).hostname or "").lower()
    for platform, domains in PLATFORM_HOSTS:
        if any(host == domain or host.endswith(f".{domain}") for domain in domains):
            return platform
    return "unknown"


def is_direct_media(url: str) -> bool:
    path = urlparse(url).path.lower()
    return path.endswith(DIRECT_MEDIA_EXTENSIONS)


def format_timestamp(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


async def run_process(
    args: List[str], timeout: Optional[float] = None
) -> Tuple[int, bytes, bytes]:
    """Run a subprocess, killing it on timeout or cancellation"""
    process = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        return process.returncode, stdout, stderr
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()


def _stderr_tail(stderr: bytes, limit: int = 300) -> str:
    return stderr.decode("utf-8", errors="replace").strip()[-limit:]


def download_percent(status: Dict[str, Any]) -> Optional[float]:
    """Percent complete from a yt-dlp progress hook payload, when it can be known"""
    if status.get("status") == "finished":
        return 100.0
    if status.get("status") != "downloading":
        return None

    total = status.get("total_bytes") or status.get("total_bytes_estimate")
    downloaded = status.get("downloaded_bytes")
    if not total or downloaded is None:
        return None
    return max(0.0, min(100.0, 100 * downloaded / total))


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class YtDlpAssetSource:
    """Resolves and downloads audio with yt-dlp, or with ffmpeg for direct media files"""

    def __init__(self, tools: MediaTools, settings: PipelineSettings):
        self.tools = tools
        self.settings = settings

    def _get_base_ydl_opts(self) -> dict:
        opts = {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
        }
        if self.tools.ffmpeg:
            opts["ffmpeg_location"] = self.tools.ffmpeg
        return opts

    def _audio_opts(self, outtmpl: str) -> dict:
        return {
            **self._get_base_ydl_opts(),
            "format": "bestaudio/best",
            "outtmpl": outtmpl,
            "nopart": True,
            "updatetime": False,
            # wait_for only stops awaiting the worker thread; yt-dlp itself keeps running
            # until a read stalls past this timeout or the download finishes
            "socket_timeout": YTDLP_SOCKET_TIMEOUT_SECONDS,
            "extractor_args": {"youtube": {"player_client": ["android"]}},
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": "mp3",
                    "preferredquality": AUDIO_BITRATE.rstrip("k"),
                }
            ],
        }

    def _require_ffmpeg(self, error_cls):
        if not self.tools.ffmpeg:
            raise error_cls("ffmpeg is not installed")
        return self.tools.ffmpeg

    async def get_info(self, url: str) -> AssetInfo:
        if is_direct_media(url) and self.tools.ffprobe:
            try:
                return await self._probe_direct(url)
            except AssetInfoError as e:
                logger.warning("ffprobe failed for direct URL, trying yt-dlp", error=str(e))

        def _extract():
            with yt_dlp.YoutubeDL(self._get_base_ydl_opts()) as ydl:
                return ydl.extract_info(url, download=False)

        try:
            info = await asyncio.wait_for(
                asyncio.to_thread(_extract), timeout=self.settings.metadata_timeout
            )
        except asyncio.TimeoutError as e:
            raise AssetInfoError(
                f"Timed out fetching video info after {self.settings.metadata_timeout}s"
            ) from e
        except (DownloadError, ExtractorError) as e:
            raise AssetInfoError(f"Failed to get video info: {e}") from e

        if not info:
            raise AssetInfoError("Failed to get video info: empty response")

        return AssetInfo(
            duration=float(info.get("duration") or 0),
            title=info.get("title") or "Untitled",
            uploader=info.get("uploader") or info.get("channel") or "Unknown",
            upload_date=info.get("upload_date") or "",
            thumbnail=info.get("thumbnail") or "",
            webpage_url=info.get("webpage_url") or url,
            platform=detect_platform(url),
        )

    async def _probe_direct(self, url: str) -> AssetInfo:
        args = [
            self.tools.ffprobe,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            url,
        ]
        try:
            returncode, stdout, stderr = await run_process(
                args, timeout=self.settings.metadata_timeout
            )
        except asyncio.TimeoutError as e:
            raise AssetInfoError(f"ffprobe timed out probing {url}") from e
        except OSError as e:
            raise AssetInfoError(f"ffprobe could not run: {e}") from e

        if returncode != 0:
            raise AssetInfoError(f"ffprobe failed: {_stderr_tail(stderr)}")

        try:
            payload = json.loads(stdout or b"{}")
            duration = float((payload.get("format") or {}).get("duration") or 0)
        except (ValueError, TypeError) as e:
            raise AssetInfoError("ffprobe returned unparseable output") from e

        return AssetInfo(
            duration=round(duration),
            title=PurePosixPath(urlparse(url).path).name or "Video",
            webpage_url=url,
            platform="direct",
        )

    async def fetch_window(self, url: str, start: float, end: float, dest: Path) -> Path:
        dest = dest.with_suffix(".mp3")
        dest.parent.mkdir(parents=True, exist_ok=True)

        if is_direct_media(url):
            ffmpeg = self._require_ffmpeg(WindowFetchError)
            args = [
                ffmpeg,
                "-y",
                "-ss",
                str(start),
                "-t",
                str(end - start),
                "-i",
                url,
                "-vn",
                "-acodec",
                "libmp3lame",
                "-b:a",
                AUDIO_BITRATE,
                "-threads",
                "2",
                str(dest),
            ]
            returncode, _, stderr = await run_process(args)
            if returncode != 0:
                raise WindowFetchError(f"ffmpeg window extraction failed: {_stderr_tail(stderr)}")
        else:
            self._require_ffmpeg(WindowFetchError)
            opts = {
                **self._audio_opts(str(dest.parent / f"{dest.stem}.%(ext)s")),
                "download_ranges": download_range_func(None, [(start, end)]),
            }

            def _download():
                with yt_dlp.YoutubeDL(opts) as ydl:
                    ydl.download([url])

            logger.debug(
                "Downloading section",
                section=f"{format_timestamp(start)}-{format_timestamp(end)}",
            )
            try:
                await asyncio.to_thread(_download)
            except (DownloadError, ExtractorError) as e:
                raise WindowFetchError(f"Section download failed: {e}") from e

        if not dest.exists() or dest.stat().st_size == 0:
            raise WindowFetchError(f"Window file not created: {dest.name}")
        return dest

    async def fetch_full(
        self, url: str, dest_dir: Path, on_progress: Optional[DownloadProgressCallback] = None
    ) -> Path:
        """
        Download the whole asset as mp3.

        on_progress receives percentages on the event loop thread. Direct media
        files report only completion.
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / f"{FULL_AUDIO_STEM}.mp3"

        if is_direct_media(url):
            ffmpeg = self._require_ffmpeg(FullFetchError)
            args = [
                ffmpeg,
                "-y",
                "-i",
                url,
                "-vn",
                "-acodec",
                "libmp3lame",
                "-b:a",
                AUDIO_BITRATE,
                "-threads",
                "0",
                str(dest),
            ]
            returncode, _, stderr = await run_process(args)
            if returncode != 0:
                raise FullFetchError(f"ffmpeg extraction failed: {_stderr_tail(stderr)}")
        else:
            self._require_ffmpeg(FullFetchError)
            opts = self._audio_opts(str(dest_dir / f"{FULL_AUDIO_STEM}.%(ext)s"))

            if on_progress:
                loop = asyncio.get_running_loop()

                def _progress_hook(status: Dict[str, Any]) -> None:
                    percent = download_percent(status)
                    if percent is not None:
                        loop.call_soon_threadsafe(on_progress, percent)

                opts["progress_hooks"] = [_progress_hook]

            def _download():
                with yt_dlp.YoutubeDL(opts) as ydl:
                    ydl.download([url])

            try:
                await asyncio.to_thread(_download)
            except (DownloadError, ExtractorError) as e:
                raise FullFetchError(f"Full download failed: {e}") from e

        if not dest.exists() or dest.stat().st_size == 0:
            raise FullFetchError("Downloaded audio file not found")

        if on_progress:
            on_progress(100.0)
        logger.info("Full audio downloaded", size_bytes=dest.stat().st_size)
        return dest

    async def split_full(self, path: Path, window_length: int) -> List[Path]:
        ffmpeg = self._require_ffmpeg(FullFetchError)
        pattern = path.parent / f"{path.stem}_segment_%03d.mp3"
        args = [
            ffmpeg,
            "-y",
            "-i",
            str(path),
            "-f",
            "segment",
            "-segment_time",
            str(window_length),
            "-c",
            "copy",
            "-reset_timestamps",
            "1",
            "-segment_format",
            "mp3",
            str(pattern),
        ]
        returncode, _, stderr = await run_process(args)
        if returncode != 0:
            raise FullFetchError(f"ffmpeg split failed: {_stderr_tail(stderr)}")

        pieces = sorted(path.parent.glob(f"{path.stem}_segment_*.mp3"))
        logger.info("Audio split into segments", segments=len(pieces))
        return pieces

    async def probe_audio(self, path: Path) -> AudioMetadata:
        """Describe an audio file with ffprobe, falling back to what the filesystem knows"""
        file_size = path.stat().st_size
        basic = AudioMetadata(format=path.suffix.lstrip(".") or "unknown", file_size=file_size)

        if not self.tools.ffprobe:
            return replace(basic, error="ffprobe is not installed")

        args = [
            self.tools.ffprobe,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            "-select_streams",
            "a:0",
            str(path),
        ]
        try:
            returncode, stdout, stderr = await run_process(
                args, timeout=self.settings.metadata_timeout
            )
        except asyncio.TimeoutError:
            return replace(basic, error="ffprobe timed out")
        except OSError as e:
            return replace(basic, error=f"ffprobe could not run: {e}")

        if returncode != 0:
            logger.warning("ffprobe could not read audio", file=path.name)
            return replace(basic, error=_stderr_tail(stderr) or "ffprobe failed")

        try:
            payload = json.loads(stdout or b"{}")
        except ValueError:
            return replace(basic, error="ffprobe returned unparseable output")

        container = payload.get("format") if isinstance(payload, dict) else None
        streams = payload.get("streams") if isinstance(payload, dict) else None
        container = container if isinstance(container, dict) else {}
        stream = streams[0] if isinstance(streams, list) and streams else {}
        stream = stream if isinstance(stream, dict) else {}

        return replace(
            basic,
            format=container.get("format_name") or basic.format,
            bitrate=_int_or_none(stream.get("bit_rate") or container.get("bit_rate")),
            sample_rate=_int_or_none(stream.get("sample_rate")),
            channels=_int_or_none(stream.get("channels")),
            duration=_float_or_none(container.get("duration") or stream.get("duration")),
            codec=stream.get("codec_name") or "unknown",
        )
