"""File store for uploaded assets and build artifacts.

Everything is written below ``storage_root`` and addressed by a path relative
to it, which is also the path under the static URL prefix:

    icons/<ms>-<name>       uploaded icons
    splash/<ms>-<name>      uploaded splash screens
    others/<ms>-<name>      any other upload kind
    builds/<package>.<ext>  build artifacts, one per package and type
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from appbuilder.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

ASSET_FOLDERS = {
    "icon": "icons",
    "splash": "splash",
}
OTHER_FOLDER = "others"
BUILDS_FOLDER = "builds"

PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class StoredFile:
    """A file written by the store."""
    relative_path: str  # POSIX path below the storage root
    absolute_path: Path


def validate_package_name(package_name: str) -> str:
    """Return ``package_name`` if it is safe to use as a file name."""
    if not package_name or not PACKAGE_NAME_PATTERN.match(package_name):
        raise ValidationError(f"Invalid package name: {package_name!r}")
    return package_name


def _safe_filename(filename: str) -> str:
    name = Path(filename or "").name
    name = UNSAFE_FILENAME_CHARS.sub("_", name).lstrip(".")
    return name or "upload"


class FileStore:
    """Writes files below a storage root and builds their public URLs."""

    def __init__(self, root: Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    async def save_upload(self, kind: str, filename: str, content: bytes) -> StoredFile:
        """Persist an uploaded asset.

        Args:
            kind: Form field the file arrived in (``icon`` or ``splash``)
            filename: Client supplied file name
            content: File bytes

        Returns:
            The stored file
        """
        folder = ASSET_FOLDERS.get(kind, OTHER_FOLDER)
        name = f"{int(time.time() * 1000)}-{_safe_filename(filename)}"
        return await self._write(f"{folder}/{name}", content)

    async def write_artifact(self, package_name: str, extension: str, content: bytes) -> StoredFile:
        """Write the ``extension`` artifact for a package, replacing any previous one."""
        validate_package_name(package_name)
        return await self._write(f"{BUILDS_FOLDER}/{package_name}.{extension}", content)

    def public_url(self, relative_path: str, base_url: str) -> str:
        """Build the download URL for a stored file."""
        return f"{base_url.rstrip('/')}{self.url_prefix}/{relative_path.lstrip('/')}"

    async def _write(self, relative_path: str, content: bytes) -> StoredFile:
        file_path = self.root / relative_path
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error(f"Failed to write {file_path}: {e}")
            raise StorageError("Failed to store file") from e

        logger.debug(f"Stored {len(content)} bytes at {file_path}")
        return StoredFile(relative_path=relative_path, absolute_path=file_path)
