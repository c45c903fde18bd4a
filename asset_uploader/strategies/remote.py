"""Remote URL import: the server fetches the file itself."""
import logging
from typing import Any, Dict

from ..errors import ProtocolError
from ..models import Phase, UploadFile
from .base import TransferStrategy

logger = logging.getLogger(__name__)


class RemoteUrlStrategy(TransferStrategy):
    """Posts a URL to the by-URL endpoint (or the upload endpoint when unset)."""

    name = "url"

    async def _transfer(self, file: UploadFile) -> Dict[str, Any]:
        if not file.source_url:
            raise ProtocolError(f"{file.name} has no source URL")

        await self._report_status(Phase.SINGLE_UPLOAD)
        await self._report_progress(0)

        endpoint = self._config.endpoints.by_url or self._config.endpoints.upload
        logger.debug(f"Importing {file.source_url} via {endpoint}")
        return await self._client.post_form(endpoint, data={"url": file.source_url})
