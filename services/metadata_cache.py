import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from config.constants import DEFAULT_CACHE_TTL_SECONDS
from config.logger import get_logger
from models.track import AssetInfo

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    info: AssetInfo
    expires_at: float


class MetadataCache:
    """Time-boxed AssetInfo cache keyed by source URL.

    Expired entries are dropped lazily on the next lookup for the same URL.
    Concurrent writers for one URL are allowed; the last write wins.
    """

    def __init__(
        self, ttl: int = DEFAULT_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.time
    ):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, url: str) -> Optional[AssetInfo]:
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None

            if self._clock() >= entry.expires_at:
                del self._entries[url]
                logger.debug("Metadata cache entry expired", url=url)
                return None

            return entry.info

    def put(self, url: str, info: AssetInfo) -> None:
        with self._lock:
            self._entries[url] = CacheEntry(info=info, expires_at=self._clock() + self.ttl)

    async def get_or_resolve(
        self, url: str, resolver: Callable[[str], Awaitable[AssetInfo]]
    ) -> AssetInfo:
        cached = self.get(url)
        if cached is not None:
            logger.info("Using cached asset info", url=url)
            return cached

        info = await resolver(url)
        self.put(url, info)
        return info

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
