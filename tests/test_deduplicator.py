from models.track import IdentifiedTrack
from services.deduplicator import deduplicate_tracks
from tests.fakes import make_match


def _track(title, artist, start, end, **kwargs):
    return IdentifiedTrack(match=make_match(title, artist, **kwargs), start=start, end=end)


def test_same_track_in_two_windows_merges_into_one_range():
    tracks = deduplicate_tracks(
        [_track("Song X", "Artist Y", 10, 25), None, _track("Song X", "Artist Y", 100, 115)]
    )

    assert len(tracks) == 1
    assert (tracks[0].start, tracks[0].end) == (10, 115)


def test_identity_ignores_case_and_keeps_first_metadata():
    tracks = deduplicate_tracks(
        [
            _track("Song X", "Artist Y", 0, 15, album="First"),
            _track("SONG x", "artist y", 30, 45, album="Second"),
        ]
    )

    assert len(tracks) == 1
    assert tracks[0].match.title == "Song X"
    assert tracks[0].match.album == "First"
    assert tracks[0].end == 45


def test_distinct_tracks_keep_first_seen_order():
    tracks = deduplicate_tracks(
        [
            _track("B", "Two", 0, 15),
            _track("A", "One", 15, 30),
            _track("B", "Two", 30, 45),
        ]
    )

    assert [t.match.title for t in tracks] == ["B", "A"]
    assert [(t.start, t.end) for t in tracks] == [(0, 45), (15, 30)]


def test_end_never_shrinks():
    tracks = deduplicate_tracks([_track("A", "One", 0, 60), _track("A", "One", 15, 30)])

    assert (tracks[0].start, tracks[0].end) == (0, 60)


def test_deduplication_is_idempotent():
    outcomes = [
        _track("A", "One", 0, 15),
        None,
        _track("a", "ONE", 45, 60),
        _track("B", "Two", 60, 75),
    ]

    once = deduplicate_tracks(outcomes)

    assert deduplicate_tracks(once) == once


def test_all_none_gives_empty_list():
    assert deduplicate_tracks([None, None]) == []
