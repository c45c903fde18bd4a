"""
Protocols (Interfaces) for Dependency Inversion.

Small interfaces for the collaborators the engine talks to: the HTTP
adapter, the transfer strategies and the content block that owns assets.
"""
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for the HTTP adapter."""

    async def post_form(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        on_bytes_sent: Optional[Callable[[int, int], Any]] = None,
    ) -> Dict[str, Any]:
        """POST multipart form and return the JSON body."""
        ...

    async def get_json(self, endpoint: str) -> Dict[str, Any]:
        """GET and return the JSON body."""
        ...

    async def delete(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> int:
        """DELETE and return the status code."""
        ...


@runtime_checkable
class ITransferStrategy(Protocol):
    """Uniform contract shared by every transfer strategy."""

    def set_progress_callback(self, callback: Callable[[int], Any]) -> "ITransferStrategy":
        ...

    def set_status_callback(self, callback: Callable[[str, str], Any]) -> "ITransferStrategy":
        ...

    async def execute(self, file) -> Any:
        """Transfer one file and return its AssetDescriptor."""
        ...

    async def abort(self) -> None:
        """Best-effort server-side teardown after cancellation."""
        ...

    def cleanup(self) -> None:
        ...

    def get_name(self) -> str:
        ...


@runtime_checkable
class IAssetHost(Protocol):
    """Content block that owns committed assets."""

    @property
    def assets(self) -> List[Any]:
        ...

    def add_asset(self, asset) -> None:
        ...

    def remove_asset(self, url: str) -> bool:
        ...

    async def notify_change(self) -> None:
        """Tell the editor the block's persisted data changed."""
        ...
