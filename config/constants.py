DEFAULT_WINDOW_LENGTH_SECONDS = 15
DEFAULT_WINDOW_COUNT = 6
MIN_WINDOW_SECONDS = 5
DENSE_PREFIX_SECONDS = 60
SPREAD_POSITIONS = (0.25, 0.50, 0.85)

DEFAULT_CACHE_TTL_SECONDS = 60 * 60
DEFAULT_ARTIFACT_MAX_AGE_SECONDS = 24 * 60 * 60
DEFAULT_CLEANUP_INTERVAL_SECONDS = 6 * 60 * 60
ARTIFACT_AGE_SAFETY_MULTIPLIER = 1.5

DEFAULT_ACRCLOUD_HOST = "identify-us-west-2.acrcloud.com"
DEFAULT_RECOGNITION_MIN_BYTES = 1000
DEFAULT_RECOGNITION_MAX_BYTES = 1024 * 1024

# Progress bands (percent) owned by each pipeline phase
PROGRESS_METADATA_DONE = 5
PROGRESS_SEGMENT_FETCH_END = 40
PROGRESS_FULL_FETCH_END = 50
PROGRESS_RECOGNITION_START = 50
PROGRESS_RECOGNITION_END = 90
PROGRESS_COMPLETE = 100

AUDIO_BITRATE = "96k"
DIRECT_MEDIA_EXTENSIONS = (
    ".mp4",
    ".webm",
    ".mkv",
    ".avi",
    ".mov",
    ".flv",
    ".m4v",
    ".3gp",
    ".mp3",
    ".wav",
    ".m4a",
    ".aac",
    ".ogg",
    ".wma",
)

# Stalled yt-dlp reads give up after this, ending threads the pipeline stopped waiting on
YTDLP_SOCKET_TIMEOUT_SECONDS = 30
