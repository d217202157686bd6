import base64
import hashlib
import hmac
import time
from typing import Any, Dict, List, Optional, Protocol

import httpx

from config.config import RecognitionSettings
from config.logger import get_logger
from models.track import TrackMatch
from utils.exceptions import (
    MalformedResponseError,
    NoMatchError,
    PayloadSizeError,
    RecognitionAuthError,
    RecognitionError,
    RecognitionTimeoutError,
)

logger = get_logger(__name__)

IDENTIFY_ENDPOINT = "/v1/identify"
DATA_TYPE = "audio"
SIGNATURE_VERSION = "1"

STATUS_OK = 0
NO_MATCH_CODES = (1001, 3001)
AUTH_ERROR_CODES = (2001, 3014, 3015)


class Recognizer(Protocol):
    async def identify(self, audio: bytes) -> TrackMatch: ...

    async def close(self) -> None: ...


def sign_request(access_key: str, access_secret: str, timestamp: str) -> str:
    string_to_sign = "\n".join(
        ["POST", IDENTIFY_ENDPOINT, access_key, DATA_TYPE, SIGNATURE_VERSION, timestamp]
    )
    digest = hmac.new(
        access_secret.encode("ascii"), string_to_sign.encode("ascii"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _first(items: Any) -> Dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _confidence(score: Any) -> int:
    # Scores arrive either as a 0..1 fraction or already as a percentage
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0
    if value <= 1:
        value *= 100
    return max(0, min(100, round(value)))


def _object_field(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedResponseError(f"Response field '{key}' is not an object")
    return value


def _list_field(payload: Dict[str, Any], key: str) -> List[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponseError(f"Response field '{key}' is not a list")
    return value


def parse_music_entry(music: Dict[str, Any]) -> TrackMatch:
    """
    Build a match from one ACRCloud music entry.

    Raises:
        MalformedResponseError: If a nested field has the wrong shape
    """
    external_ids = _object_field(music, "external_ids")
    spotify = _object_field(_object_field(music, "external_metadata"), "spotify")
    spotify_track = _object_field(spotify, "track")
    duration_ms = music.get("duration_ms")
    duration_seconds = round(duration_ms / 1000) if isinstance(duration_ms, (int, float)) else None

    return TrackMatch(
        title=str(music.get("title") or "Unknown"),
        artist=str(_first(_list_field(music, "artists")).get("name") or "Unknown Artist"),
        album=_object_field(music, "album").get("name"),
        genre=_first(_list_field(music, "genres")).get("name"),
        release_date=music.get("release_date"),
        duration_seconds=duration_seconds,
        confidence=_confidence(music.get("score")),
        acrcloud_id=music.get("acrid"),
        external_ids={
            "spotify": external_ids.get("spotify") or spotify_track.get("id"),
            "isrc": external_ids.get("isrc"),
        },
    )


class ACRCloudRecognizer:
    """Identifies audio clips against the ACRCloud identify API"""

    def __init__(self, settings: RecognitionSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)
        self.url = f"https://{settings.host}{IDENTIFY_ENDPOINT}"

    @property
    def configured(self) -> bool:
        return self.settings.configured

    async def identify(self, audio: bytes) -> TrackMatch:
        """
        Identify the music in one clip.

        Raises:
            RecognitionAuthError: Missing or rejected credentials
            PayloadSizeError: Clip outside the accepted byte range
            RecognitionTimeoutError: Service did not answer in time
            NoMatchError: Clip has no known music
            MalformedResponseError: Response could not be parsed
            RecognitionError: Any other service failure
        """
        if not self.configured:
            raise RecognitionAuthError("ACRCloud credentials not configured")

        size = len(audio or b"")
        if size < self.settings.min_bytes or size > self.settings.max_bytes:
            raise PayloadSizeError(
                f"Audio payload of {size} bytes outside "
                f"[{self.settings.min_bytes}, {self.settings.max_bytes}]"
            )

        timestamp = str(int(time.time()))
        data = {
            "access_key": self.settings.access_key,
            "data_type": DATA_TYPE,
            "signature_version": SIGNATURE_VERSION,
            "signature": sign_request(
                self.settings.access_key, self.settings.access_secret, timestamp
            ),
            "sample_bytes": str(size),
            "timestamp": timestamp,
        }
        files = {"sample": ("sample.mp3", audio, "audio/mpeg")}

        try:
            response = await self._client.post(
                self.url, data=data, files=files, timeout=self.settings.timeout
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise RecognitionTimeoutError(
                f"Recognition timed out after {self.settings.timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                raise RecognitionAuthError(f"Recognizer rejected credentials: {e}") from e
            raise RecognitionError(f"Recognizer HTTP error: {e}") from e
        except httpx.HTTPError as e:
            raise RecognitionError(f"Recognizer request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError("Recognizer returned invalid JSON") from e

        return self._parse(body)

    def _parse(self, body: Any) -> TrackMatch:
        if not isinstance(body, dict) or not isinstance(body.get("status"), dict):
            raise MalformedResponseError("Recognizer response has no status")

        code = body["status"].get("code")
        message = body["status"].get("msg") or body["status"].get("message") or ""

        if code in NO_MATCH_CODES:
            raise NoMatchError(f"No match ({code})")
        if code in AUTH_ERROR_CODES:
            logger.error("ACRCloud authentication failed", code=code, message=message)
            raise RecognitionAuthError(f"Authentication failed ({code}): {message}")
        if code != STATUS_OK:
            raise RecognitionError(f"Recognizer error ({code}): {message}")

        music = _object_field(body, "metadata").get("music")
        if not music:
            raise NoMatchError("Recognizer returned no music metadata")

        entry = _first(music)
        if not entry:
            raise MalformedResponseError("Recognizer music entry is not an object")

        return parse_music_entry(entry)

    async def close(self) -> None:
        await self._client.aclose()
