from typing import Dict, Iterable, List, Optional, Tuple

from models.track import IdentifiedTrack


def deduplicate_tracks(outcomes: Iterable[Optional[IdentifiedTrack]]) -> List[IdentifiedTrack]:
    """
    Merge recognitions of the same track across windows.

    Two outcomes are the same track when title and artist match ignoring case.
    The first-seen metadata and start are kept and the end grows to the latest
    end seen. Output keeps first-seen order.
    """
    merged: Dict[Tuple[str, str], IdentifiedTrack] = {}

    for track in outcomes:
        if track is None:
            continue

        key = track.identity
        existing = merged.get(key)
        if existing is None:
            merged[key] = track
        else:
            merged[key] = existing.extended_to(track.end)

    return list(merged.values())
