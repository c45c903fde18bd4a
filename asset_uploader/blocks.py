"""Host content block that owns uploaded assets."""
import inspect
from typing import Any, Callable, Dict, List, Optional

from .models import AssetDescriptor
from .services.cleanup import DeletionService


class MediaBlock:
    """
    Asset list of one image/video block.

    Implements IAssetHost. Serialises to the block's saved data and notifies
    the editor through an optional change callback.
    """

    def __init__(
        self,
        assets: Optional[List[AssetDescriptor]] = None,
        on_change: Optional[Callable[[], Any]] = None,
    ):
        self._assets: List[AssetDescriptor] = list(assets or [])
        self._on_change = on_change

    @property
    def assets(self) -> List[AssetDescriptor]:
        return list(self._assets)

    def add_asset(self, asset: AssetDescriptor) -> None:
        self._assets.append(asset)

    def remove_asset(self, url: str) -> bool:
        for index, asset in enumerate(self._assets):
            if asset.url == url:
                del self._assets[index]
                return True
        return False

    def set_caption(self, url: str, caption: str) -> bool:
        for index, asset in enumerate(self._assets):
            if asset.url == url:
                self._assets[index] = asset.with_caption(caption)
                return True
        return False

    async def notify_change(self) -> None:
        if self._on_change is None:
            return
        result = self._on_change()
        if inspect.isawaitable(result):
            await result

    async def removed(self, deleter: DeletionService) -> List[bool]:
        """Block was removed from the document: delete every backing file."""
        urls = [asset.url for asset in self._assets]
        results = await deleter.delete_many(urls)
        self._assets.clear()
        return results

    def save(self) -> Dict[str, Any]:
        return {"files": [asset.to_dict() for asset in self._assets]}

    @classmethod
    def load(cls, data: Optional[Dict[str, Any]], on_change: Optional[Callable[[], Any]] = None) -> "MediaBlock":
        files = (data or {}).get("files") or []
        assets = [AssetDescriptor.from_dict(item) for item in files if isinstance(item, dict) and item.get("url")]
        return cls(assets, on_change=on_change)
