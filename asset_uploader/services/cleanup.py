"""
Cleanup/Deletion Protocol - reverse a successful upload.

Deletion is best-effort: the caller has already removed the asset locally,
so a server failure is logged and reported as False, never raised.
"""
import asyncio
import logging
from typing import Iterable, List, Optional

from ..errors import UploadError
from ..models import UploadConfig
from ..protocols import IAPIClient
from ..utils.events import EditorSignals

logger = logging.getLogger(__name__)


def server_relative_path(url: str, marker: str = "/storage/", prefix: Optional[str] = None) -> str:
    """
    Strip everything up to and including the storage marker.

    With a prefix, the result is forced under it, e.g. "documents/videos/".
    """
    path = url
    if marker and marker in path:
        path = path[path.index(marker) + len(marker):]

    if prefix and not path.startswith(prefix):
        # A shorter parent of the prefix may already be there ("documents/" vs "documents/videos/").
        head = prefix.split("/", 1)[0] + "/"
        if path.startswith(head):
            path = path[len(head):]
        path = prefix + path
    return path


class DeletionService:
    """Issues DELETE requests for stored assets."""

    def __init__(
        self,
        client: IAPIClient,
        config: Optional[UploadConfig] = None,
        signals: Optional[EditorSignals] = None,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._signals = signals or EditorSignals()

    def path_for(self, url: str) -> str:
        return server_relative_path(url, self._config.storage_marker, self._config.delete_path_prefix)

    async def _delete_one(self, url: str) -> bool:
        path = self.path_for(url)
        try:
            await self._client.delete(self._config.endpoints.delete, json={"path": path})
            logger.info(f"Deleted {path}")
            return True
        except UploadError as e:
            logger.warning(f"Delete failed for {path}: {e}")
            return False

    async def delete(self, url: str) -> bool:
        """Delete one asset. Returns False on failure instead of raising."""
        await self._signals.busy()
        try:
            return await self._delete_one(url)
        finally:
            await self._signals.free()

    async def delete_many(self, urls: Iterable[str]) -> List[bool]:
        """Delete several assets concurrently, e.g. when their block is removed."""
        urls = [url for url in urls if url]
        if not urls:
            return []
        await self._signals.busy()
        try:
            return list(await asyncio.gather(*(self._delete_one(url) for url in urls)))
        finally:
            await self._signals.free()
