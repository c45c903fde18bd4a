"""
Asset Uploader - resumable multi-file uploads for editor media blocks.

Small files go up in one multipart request, large ones in ordered chunks,
and server-side video processing is polled until the asset is ready.

Usage:
    from asset_uploader import UploadOrchestrator, UploadConfig, MediaBlock

    block = MediaBlock()
    async with UploadOrchestrator(api_url, UploadConfig.for_video(), host=block) as uploader:
        result = await uploader.handle_upload([video_path])

    # Retry whatever failed
    await uploader.retry_failed()

    # Import a remote file server-side
    await uploader.handle_url("https://example.com/clip.mp4")

    # Remove an asset and its stored file
    await uploader.delete_asset(block.assets[0].url)
"""
from .blocks import MediaBlock
from .errors import (
    InvalidTransitionError,
    ProtocolError,
    TransportError,
    UploadError,
    ValidationError,
)
from .models import (
    AssetDescriptor,
    Phase,
    TransferSession,
    UploadConfig,
    UploadEndpoints,
    UploadFile,
    UploadItem,
    UploadStatus,
)
from .orchestrator import BatchResult, UploadOrchestrator
from .progress import ProgressBridge, ProgressSnapshot
from .registrar import ResultRegistrar
from .services import DeletionService, HTTPAPIClient
from .strategies import ChunkedStrategy, RemoteUrlStrategy, SingleShotStrategy, StrategySelector
from .utils import EditorSignals
from .validation import FileValidator

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchResult",
    "MediaBlock",
    # Models
    "UploadFile",
    "UploadItem",
    "UploadStatus",
    "Phase",
    "AssetDescriptor",
    "TransferSession",
    "UploadConfig",
    "UploadEndpoints",
    # Strategies
    "StrategySelector",
    "SingleShotStrategy",
    "ChunkedStrategy",
    "RemoteUrlStrategy",
    # Services
    "HTTPAPIClient",
    "DeletionService",
    "ResultRegistrar",
    "FileValidator",
    "ProgressBridge",
    "ProgressSnapshot",
    "EditorSignals",
    # Errors
    "UploadError",
    "TransportError",
    "ProtocolError",
    "ValidationError",
    "InvalidTransitionError",
]
