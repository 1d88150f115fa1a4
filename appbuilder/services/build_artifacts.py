"""Build artifact generation.

``BuildArtifactGenerator`` is the seam between the submission/payment flows
and whatever produces the downloadable build. The only implementation writes
a text marker in place of a real binary.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from appbuilder.services.file_store import FileStore, StoredFile

logger = logging.getLogger(__name__)

ARTIFACT_KINDS = ("apk", "aab")


class BuildArtifactGenerator(ABC):
    """Abstract producer of build artifacts."""

    @abstractmethod
    async def generate(self, package_name: str, kind: str) -> StoredFile:
        """Produce the ``kind`` artifact (``apk`` or ``aab``) for a package."""
        pass


class StubBuildGenerator(BuildArtifactGenerator):
    """Writes a marker file naming the package and the build time."""

    def __init__(self, file_store: FileStore):
        self.file_store = file_store

    async def generate(self, package_name: str, kind: str) -> StoredFile:
        if kind not in ARTIFACT_KINDS:
            raise ValueError(f"Unknown artifact kind: {kind}")

        built_at = datetime.now(timezone.utc).isoformat()
        marker = f"{kind.upper()} build for {package_name} at {built_at}"
        stored = await self.file_store.write_artifact(package_name, kind, marker.encode())

        logger.info(f"Generated stub {kind} for {package_name}: {stored.relative_path}")
        return stored
