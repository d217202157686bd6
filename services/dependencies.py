from typing import Optional

from config.config import Config
from config.logger import get_logger
from services.artifact_store import LocalArtifactStore
from services.asset_source import AssetSource, MediaTools, YtDlpAssetSource
from services.dispatcher import RecognitionDispatcher
from services.job_store import JobStore
from services.metadata_cache import MetadataCache
from services.pipeline import ExtractionPipeline
from services.reaper import Reaper
from services.recognizer import ACRCloudRecognizer, Recognizer

logger = get_logger(__name__)


class Services:
    def __init__(
        self,
        job_store: JobStore,
        artifacts: LocalArtifactStore,
        recognizer: Recognizer,
        pipeline: ExtractionPipeline,
        reaper: Reaper,
        tools: Optional[MediaTools] = None,
    ):
        self.job_store = job_store
        self.artifacts = artifacts
        self.recognizer = recognizer
        self.pipeline = pipeline
        self.reaper = reaper
        self.tools = tools

    async def close(self):
        """Close all services"""
        await self.reaper.stop()
        await self.recognizer.close()


def build_services(
    config: Config,
    source: Optional[AssetSource] = None,
    recognizer: Optional[Recognizer] = None,
) -> Services:
    """Wire every collaborator from configuration; `source` and `recognizer` may be overridden"""
    tools = None
    if source is None:
        tools = MediaTools.resolve()
        source = YtDlpAssetSource(tools, config.pipeline)

    if recognizer is None:
        recognizer = ACRCloudRecognizer(config.recognition)

    artifacts = LocalArtifactStore(config.storage.artifacts_dir)
    job_store = JobStore()
    pipeline = ExtractionPipeline(
        settings=config.pipeline,
        job_store=job_store,
        cache=MetadataCache(ttl=config.storage.cache_ttl),
        source=source,
        artifacts=artifacts,
        dispatcher=RecognitionDispatcher(recognizer, artifacts, config.recognition),
    )
    reaper = Reaper(
        artifacts,
        max_age=config.storage.artifact_max_age,
        interval=config.storage.cleanup_interval,
    )

    return Services(
        job_store=job_store,
        artifacts=artifacts,
        recognizer=recognizer,
        pipeline=pipeline,
        reaper=reaper,
        tools=tools,
    )
