from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class AssetInfo:
    duration: float
    title: str
    uploader: str = "Unknown"
    upload_date: str = ""
    thumbnail: str = ""
    webpage_url: str = ""
    platform: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "duration": self.duration,
            "uploader": self.uploader,
            "uploadDate": self.upload_date,
            "thumbnail": self.thumbnail,
            "platform": self.platform,
            "webpageUrl": self.webpage_url,
        }


@dataclass
class SegmentWindow:
    index: int
    start: float
    end: float
    audio_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def length(self) -> float:
        return self.end - self.start

    @property
    def fetched(self) -> bool:
        return self.audio_path is not None and self.error is None


@dataclass(frozen=True)
class TrackMatch:
    title: str
    artist: str
    album: Optional[str] = None
    genre: Optional[str] = None
    release_date: Optional[str] = None
    duration_seconds: Optional[int] = None
    confidence: int = 0
    acrcloud_id: Optional[str] = None
    external_ids: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class IdentifiedTrack:
    match: TrackMatch
    start: float
    end: float

    @property
    def identity(self) -> tuple[str, str]:
        return self.match.title.lower(), self.match.artist.lower()

    def extended_to(self, end: float) -> "IdentifiedTrack":
        if end <= self.end:
            return self
        return replace(self, end=end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.match.title,
            "artist": self.match.artist,
            "album": self.match.album,
            "genre": self.match.genre,
            "releaseDate": self.match.release_date,
            "duration": self.match.duration_seconds,
            "timestamp": {"start": self.start, "end": self.end},
            "confidence": self.match.confidence,
            "acrcloudId": self.match.acrcloud_id,
            "externalIds": dict(self.match.external_ids),
        }


@dataclass(frozen=True)
class AudioMetadata:
    """Container and stream details of the audio that was analyzed"""

    format: str
    file_size: int
    bitrate: Optional[int] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    duration: Optional[float] = None
    codec: str = "unknown"
    audio_file: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "format": self.format,
            "bitrate": self.bitrate,
            "sampleRate": self.sample_rate,
            "channels": self.channels,
            "duration": self.duration,
            "fileSize": self.file_size,
            "fileSizeMB": f"{self.file_size / (1024 * 1024):.2f}",
            "codec": self.codec,
            "audioFile": self.audio_file,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class ProcessingMetrics:
    processing_time: float
    windows_analyzed: int
    tracks_found: int
    mode: str


@dataclass(frozen=True)
class JobResult:
    asset: AssetInfo
    tracks: List[IdentifiedTrack]
    metrics: ProcessingMetrics
    artifacts: List[str] = field(default_factory=list)
    audio: Optional[AudioMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        tracks = [track.to_dict() for track in self.tracks]
        return {
            "videoInfo": self.asset.to_dict(),
            "audioMetadata": self.audio.to_dict() if self.audio else None,
            "identifiedTracks": tracks,
            "segments": [
                {
                    "segmentNumber": number,
                    "startTime": track["timestamp"]["start"],
                    "endTime": track["timestamp"]["end"],
                    "identifiedTrack": track,
                }
                for number, track in enumerate(tracks, start=1)
            ],
            "processingInfo": {
                "processingTime": self.metrics.processing_time,
                "status": "completed",
                "tracksFound": self.metrics.tracks_found,
                "segmentsAnalyzed": self.metrics.windows_analyzed,
                "mode": self.metrics.mode,
            },
            "artifacts": list(self.artifacts),
        }
