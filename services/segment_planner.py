import math
from typing import List

from config.constants import (
    DEFAULT_WINDOW_COUNT,
    DEFAULT_WINDOW_LENGTH_SECONDS,
    DENSE_PREFIX_SECONDS,
    MIN_WINDOW_SECONDS,
    SPREAD_POSITIONS,
)
from models.track import SegmentWindow
from utils.exceptions import ValidationError


def _overlaps(start: float, end: float, planned: List[SegmentWindow]) -> bool:
    return any(start < window.end and window.start < end for window in planned)


def _try_add(planned: List[SegmentWindow], start: float, end: float) -> None:
    if end - start < MIN_WINDOW_SECONDS or _overlaps(start, end, planned):
        return
    planned.append(SegmentWindow(index=len(planned), start=start, end=end))


def plan_segments(
    duration: float,
    window_length: int = DEFAULT_WINDOW_LENGTH_SECONDS,
    window_count: int = DEFAULT_WINDOW_COUNT,
) -> List[SegmentWindow]:
    """
    Choose which time windows of an asset to sample for recognition.

    The first minute is packed densely since short inserted clips tend to sit
    there, then a few representative positions are sampled, then the rest of
    the budget is spread evenly. Windows never overlap and are at least
    MIN_WINDOW_SECONDS long, except for assets shorter than one window.

    Raises:
        ValidationError: If duration or the planning parameters are not positive
    """
    if duration is None or duration <= 0:
        raise ValidationError(f"Duration must be positive (got {duration})")
    if window_length <= 0 or window_count <= 0:
        raise ValidationError("Window length and window count must be positive")

    if duration <= window_length:
        return [SegmentWindow(index=0, start=0, end=duration)]

    planned: List[SegmentWindow] = []

    dense_end = min(DENSE_PREFIX_SECONDS, duration)
    start = 0
    while start < dense_end and len(planned) < window_count:
        _try_add(planned, start, min(start + window_length, duration))
        start += window_length

    for fraction in SPREAD_POSITIONS:
        if len(planned) >= window_count:
            break
        position = math.floor(duration * fraction)
        start = max(0, position - window_length // 2)
        _try_add(planned, start, min(start + window_length, duration))

    attempt = 0
    while len(planned) < window_count and attempt < window_count * 2:
        start = math.floor(duration / window_count * attempt)
        _try_add(planned, start, min(start + window_length, duration))
        attempt += 1

    return planned
