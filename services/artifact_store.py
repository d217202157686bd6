import shutil
from pathlib import Path
from typing import Iterator

from config.logger import get_logger
from utils.exceptions import ArtifactAccessError, ArtifactError

logger = get_logger(__name__)


class LocalArtifactStore:
    """Audio artifacts on local disk, scoped to a single root directory"""

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self._ensure_root()

    def _ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("Artifact directory initialized", path=str(self.root))

    def job_dir(self, task_id: str) -> Path:
        path = self.root / task_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _scoped(self, path: Path) -> Path:
        resolved = Path(path).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ArtifactAccessError(f"Path outside artifact root: {path}")
        return resolved

    def write(self, path: Path, data: bytes) -> Path:
        target = self._scoped(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            return target
        except OSError as e:
            raise ArtifactError(f"Failed to write artifact {target.name}: {e}") from e

    def read(self, path: Path) -> bytes:
        target = self._scoped(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise ArtifactError(f"Failed to read artifact {target.name}: {e}") from e

    def delete(self, path: Path) -> None:
        target = self._scoped(path)
        if target == self.root:
            raise ArtifactAccessError("Refusing to delete the artifact root")
        try:
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
        except OSError as e:
            raise ArtifactError(f"Failed to delete artifact {target.name}: {e}") from e

    def last_access(self, path: Path) -> float:
        """Most recent atime/mtime of a file, or of anything inside a directory"""
        target = self._scoped(path)
        try:
            stats = target.stat()
            latest = max(stats.st_atime, stats.st_mtime)
            if target.is_dir():
                for child in target.rglob("*"):
                    child_stats = child.stat()
                    latest = max(latest, child_stats.st_atime, child_stats.st_mtime)
            return latest
        except OSError as e:
            raise ArtifactError(f"Failed to stat artifact {target.name}: {e}") from e

    def entries(self) -> Iterator[Path]:
        if not self.root.exists():
            return iter(())
        return iter(sorted(self.root.iterdir()))

    def relative_name(self, path: Path) -> str:
        return self._scoped(path).relative_to(self.root).as_posix()

    def resolve_download(self, filename: str) -> Path:
        """Map a client-supplied name to a file under the root.

        Raises:
            ArtifactAccessError: If the name escapes the artifact root
            FileNotFoundError: If no such artifact exists
        """
        candidate = Path(filename)
        if candidate.is_absolute():
            target = self._scoped(candidate)
        else:
            target = self._scoped(self.root / candidate)

        if not target.is_file():
            raise FileNotFoundError(filename)
        return target
