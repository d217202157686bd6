import pytest

from services.artifact_store import LocalArtifactStore
from utils.exceptions import ArtifactAccessError, ArtifactError


@pytest.fixture
def store(tmp_path):
    return LocalArtifactStore(str(tmp_path / "artifacts"))


def test_write_read_and_relative_name(store):
    path = store.write(store.job_dir("job-1") / "segment_000.mp3", b"audio")

    assert store.read(path) == b"audio"
    assert store.relative_name(path) == "job-1/segment_000.mp3"
    assert [entry.name for entry in store.entries()] == ["job-1"]


def test_paths_outside_root_are_rejected(store, tmp_path):
    outside = tmp_path / "elsewhere.mp3"

    with pytest.raises(ArtifactAccessError):
        store.write(outside, b"x")
    with pytest.raises(ArtifactAccessError):
        store.delete(store.root)


def test_resolve_download(store, tmp_path):
    store.write(store.root / "job-1" / "clip.mp3", b"audio")
    (tmp_path / "secret.txt").write_text("nope")

    assert store.resolve_download("job-1/clip.mp3").read_bytes() == b"audio"
    with pytest.raises(ArtifactAccessError):
        store.resolve_download("../secret.txt")
    with pytest.raises(ArtifactAccessError):
        store.resolve_download(str(tmp_path / "secret.txt"))
    with pytest.raises(FileNotFoundError):
        store.resolve_download("job-1/missing.mp3")


def test_delete_removes_directories(store):
    job_dir = store.job_dir("job-1")
    store.write(job_dir / "clip.mp3", b"audio")

    store.delete(job_dir)

    assert not job_dir.exists()


def test_reading_missing_file_raises_artifact_error(store):
    with pytest.raises(ArtifactError):
        store.read(store.root / "missing.mp3")
