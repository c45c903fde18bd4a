"""
Transfer strategy base class.

Owns the uniform contract (callbacks, monotonic progress, single terminal
outcome) and the server-side processing poll shared by both strategies.
Subclasses only implement _transfer().
"""
import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..errors import ProtocolError, TransportError
from ..models import AssetDescriptor, Phase, PHASE_MESSAGES, UploadConfig, UploadFile
from ..protocols import IAPIClient
from ..registrar import ResultRegistrar

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Any]
StatusCallback = Callable[[str, str], Any]

PROCESSING_MESSAGES = {
    "chunk_assembly": "Assembling video chunks...",
    "conversion": "Converting video format...",
    "metadata_extraction": "Extracting metadata...",
    "thumbnail_generation": "Generating thumbnails...",
    "video_processing": "Processing video...",
}


def build_processed_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a finished processing session like a regular completion response."""
    meta = data.get("video_metadata") or {}
    return {
        "success": True,
        "completed": True,
        "url": data.get("url"),
        "file": {
            "filename": data.get("final_filename"),
            "thumbnail": data.get("thumbnail_filename"),
        },
        "width": meta.get("width"),
        "height": meta.get("height"),
        "duration": meta.get("duration"),
        "size": data.get("file_size"),
        "format": meta.get("format"),
        "aspect_ratio": meta.get("aspect_ratio"),
    }


class TransferStrategy(ABC):
    """Common behaviour for Single-Shot and Chunked transfers."""

    name = "base"

    def __init__(
        self,
        client: IAPIClient,
        config: Optional[UploadConfig] = None,
        registrar: Optional[ResultRegistrar] = None,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._registrar = registrar or ResultRegistrar(self._config)
        self._progress_callback: Optional[ProgressCallback] = None
        self._status_callback: Optional[StatusCallback] = None
        self._last_progress = -1

    def set_progress_callback(self, callback: ProgressCallback) -> "TransferStrategy":
        self._progress_callback = callback
        return self

    def set_status_callback(self, callback: StatusCallback) -> "TransferStrategy":
        self._status_callback = callback
        return self

    def get_name(self) -> str:
        return self.name

    async def execute(self, file: UploadFile) -> AssetDescriptor:
        """Transfer the file. Returns the asset or raises UploadError."""
        self._last_progress = -1
        try:
            response = await self._transfer(file)
            if response.get("processing"):
                response = await self._await_processing(response)
            asset = self._registrar.normalize(response)
            await self._report_progress(100)
            await self._report_status(Phase.COMPLETE)
            return asset
        except asyncio.CancelledError:
            await self.abort()
            raise
        finally:
            self.cleanup()

    @abstractmethod
    async def _transfer(self, file: UploadFile) -> Dict[str, Any]:
        """Send the bytes and return the completion response."""

    async def abort(self) -> None:
        """Best-effort server-side teardown after cancellation."""

    def cleanup(self) -> None:
        """Release buffers and session state."""

    def _processing_session_id(self, response: Dict[str, Any]) -> Optional[str]:
        return response.get("session_id")

    async def _report_progress(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if percent <= self._last_progress:
            return
        self._last_progress = percent
        if self._progress_callback is not None:
            result = self._progress_callback(percent)
            if inspect.isawaitable(result):
                await result

    async def _report_status(self, phase: Phase, message: Optional[str] = None) -> None:
        if self._status_callback is None:
            return
        result = self._status_callback(message or PHASE_MESSAGES[phase], phase.value)
        if inspect.isawaitable(result):
            await result

    async def _await_processing(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Poll the session status endpoint until the server finishes processing."""
        endpoint = self._config.endpoints.session_status
        session_id = self._processing_session_id(response)
        if not endpoint or not session_id:
            # Nothing to poll; the response itself has to carry the asset.
            return response

        await self._report_status(Phase.VIDEO_PROCESSING)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.processing_timeout
        status_url = f"{endpoint.rstrip('/')}/{session_id}/status"
        last_phase = Phase.VIDEO_PROCESSING.value

        while True:
            status = await self._client.get_json(status_url)
            data = status.get("data") or {}
            phase = status.get("phase")

            if status.get("status") == "completed" and phase == "complete":
                logger.info(f"Server finished processing session {session_id}")
                return build_processed_response(data)
            if status.get("status") == "failed":
                raise ProtocolError(data.get("error_message") or "Upload failed")

            # Server sub-phases only change the message; listeners see video_processing.
            if phase in PROCESSING_MESSAGES and phase != last_phase:
                await self._report_status(Phase.VIDEO_PROCESSING, PROCESSING_MESSAGES[phase])
                last_phase = phase

            if loop.time() >= deadline:
                raise TransportError(f"Timed out waiting for server processing of session {session_id}")
            await asyncio.sleep(self._config.poll_interval)

