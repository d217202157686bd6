import uuid as uuid_module
from urllib.parse import urlparse

import validators

from utils.exceptions import ValidationError

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")


def validate_media_url(raw_url) -> str:
    """Return the stripped URL or raise ValidationError"""
    if not raw_url or not isinstance(raw_url, str):
        raise ValidationError("Video URL is required")

    url = raw_url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"Video URL too long (max {MAX_URL_LENGTH} characters)")

    if urlparse(url).scheme.lower() not in ALLOWED_SCHEMES:
        raise ValidationError("Invalid URL format")

    if validators.url(url) is not True:
        raise ValidationError("Invalid URL format")

    return url


def validate_task_id(task_id: str) -> bool:
    try:
        uuid_module.UUID(task_id)
        return True
    except (ValueError, TypeError):
        return False
