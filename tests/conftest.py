import pytest

from config.config import Config
from models.track import AssetInfo, IdentifiedTrack, JobResult, ProcessingMetrics, TrackMatch


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def config(tmp_path):
    return Config(
        _env_file=None,
        artifacts_dir=str(tmp_path / "artifacts"),
        acrcloud_access_key="test-key",
        acrcloud_access_secret="test-secret",
        recognition_batch_delay_ms=0,
        debug=True,
    )


@pytest.fixture
def job_result():
    track = IdentifiedTrack(match=TrackMatch(title="Song", artist="Band"), start=0, end=15)
    return JobResult(
        asset=AssetInfo(duration=120, title="Clip"),
        tracks=[track],
        metrics=ProcessingMetrics(
            processing_time=1.5, windows_analyzed=6, tracks_found=1, mode="segment"
        ),
    )
