"""
Tracking of the intermediate files a job creates.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import ResourceCleanupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TempArtifact:
    """An intermediate file owned by exactly one job."""
    path: str
    owner_job_id: str


class TempResourceManager:
    """Allocates job-namespaced temp paths and guarantees their removal."""

    def __init__(self, job_id: str, temp_dir: str):
        self.job_id = job_id
        self.temp_dir = temp_dir
        self._artifacts: Dict[str, TempArtifact] = {}

    def allocate(self, suffix: str, directory: Optional[str] = None, prefix: str = "") -> str:
        """
        Reserve a fresh path for an intermediate file and register it.

        Args:
            suffix: File extension including the dot (".wav")
            directory: Where the file should live (defaults to temp_dir).
                Use the output directory for files that will be renamed
                into place so the rename stays on one filesystem.
            prefix: Optional readable prefix

        Returns:
            Absolute path; the file itself is not created
        """
        directory = directory or self.temp_dir
        name = f"{prefix}{self.job_id}_{uuid.uuid4().hex[:8]}{suffix}"
        path = os.path.abspath(os.path.join(directory, name))
        self._artifacts[path] = TempArtifact(path=path, owner_job_id=self.job_id)
        logger.debug(f"Allocated temp artifact {path}")
        return path

    def release(self, path: str) -> None:
        """Delete an artifact that is no longer needed."""
        artifact = self._artifacts.pop(path, None)
        if artifact is None:
            return
        try:
            self._remove(artifact)
        except ResourceCleanupError as e:
            logger.warning(str(e))

    def promote(self, path: str, final_path: str) -> None:
        """Atomically move an artifact over its final location and stop tracking it."""
        os.replace(path, final_path)
        self._artifacts.pop(path, None)
        logger.debug(f"Moved temp artifact {path} -> {final_path}")

    def cleanup(self) -> List[ResourceCleanupError]:
        """Remove every artifact still registered. Failures are logged and returned, never raised."""
        errors = []
        for path in list(self._artifacts):
            artifact = self._artifacts.pop(path)
            try:
                self._remove(artifact)
            except ResourceCleanupError as e:
                logger.warning(str(e))
                errors.append(e)
        return errors

    @property
    def artifacts(self) -> List[TempArtifact]:
        return list(self._artifacts.values())

    def _remove(self, artifact: TempArtifact) -> None:
        try:
            if os.path.exists(artifact.path):
                os.remove(artifact.path)
                logger.debug(f"Removed temp artifact {artifact.path}")
        except OSError as e:
            raise ResourceCleanupError(
                f"Failed to remove temp file {artifact.path} for job {artifact.owner_job_id}: {e}"
            ) from e

    def __enter__(self) -> "TempResourceManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
