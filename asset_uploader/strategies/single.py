"""Single-Shot strategy: the whole file in one multipart request."""
import io
import logging
from typing import Any, Dict, Optional

from ..models import Phase, UploadFile
from .base import TransferStrategy

logger = logging.getLogger(__name__)


class SingleShotStrategy(TransferStrategy):
    """
    Upload a file with one POST to the upload endpoint.

    Progress follows the bytes handed to the transport, capped at 99 until
    the response has been validated.
    """

    name = "single"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._buffer: Optional[bytes] = None

    async def _transfer(self, file: UploadFile) -> Dict[str, Any]:
        await self._report_status(Phase.SINGLE_UPLOAD)
        await self._report_progress(0)

        self._buffer = await file.read_all()
        files = {self._config.field_name: (file.name, io.BytesIO(self._buffer), file.content_type)}
        logger.debug(f"Single upload: {file.name} ({file.size} bytes) -> {self._config.endpoints.upload}")

        return await self._client.post_form(
            self._config.endpoints.upload,
            files=files,
            on_bytes_sent=self._on_bytes_sent,
        )

    async def _on_bytes_sent(self, sent: int, total: int) -> None:
        if total > 0:
            await self._report_progress(min(99, sent * 100 // total))

    def cleanup(self) -> None:
        self._buffer = None
