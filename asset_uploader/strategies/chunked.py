"""Chunked strategy: fixed-size byte ranges sent in order against one session."""
import logging
import math
import secrets
import time
from typing import Any, Dict, Optional

from ..errors import ProtocolError, UploadError
from ..models import Phase, TransferSession, UploadFile
from .base import TransferStrategy

logger = logging.getLogger(__name__)


class ChunkedStrategy(TransferStrategy):
    """
    Upload a large file as a sequence of chunks.

    One chunk is in flight at a time. Progress is chunks_sent / total_chunks,
    capped at 99 until the final acknowledgement has been validated. Any chunk
    failure fails the whole transfer; a retry gets a fresh strategy and with
    it a fresh session.
    """

    name = "chunk"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._session: Optional[TransferSession] = None
        self._buffer: Optional[bytes] = None

    @property
    def session(self) -> Optional[TransferSession]:
        return self._session

    def generate_file_key(self) -> str:
        return f"{self._config.field_name}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"

    async def _open_session_id(self, file: UploadFile) -> str:
        endpoint = self._config.endpoints.create_session
        if not endpoint:
            return self.generate_file_key()

        response = await self._client.post_form(
            endpoint,
            data={
                "file_size": str(file.size),
                "original_filename": file.name,
                "max_single_file_size": str(self._config.single_shot_threshold),
                "chunks_total": str(max(1, math.ceil(file.size / self._config.chunk_size))),
            },
        )
        session_id = (response.get("data") or {}).get("session_id") or response.get("session_id")
        if not session_id:
            raise ProtocolError("Upload session response has no session_id")
        return str(session_id)

    async def _transfer(self, file: UploadFile) -> Dict[str, Any]:
        session_id = await self._open_session_id(file)
        self._session = TransferSession.open(session_id, file.size, self._config.chunk_size)
        session = self._session
        logger.info(f"Starting chunked upload: {file.name} ({session.total_chunks} chunks, session {session_id})")

        await self._report_status(Phase.CHUNK_UPLOAD)
        await self._report_progress(0)

        response: Dict[str, Any] = {}
        for index in range(session.total_chunks):
            start, end = session.byte_range(index)
            self._buffer = await file.read_range(start, end)
            logger.debug(f"Uploading chunk {index + 1}/{session.total_chunks} ({end - start} bytes)")

            response = await self._client.post_form(
                self._config.endpoints.chunk_endpoint,
                data={
                    "fileKey": session.session_id,
                    "fileName": file.name,
                    "chunk": str(index),
                    "chunks": str(session.total_chunks),
                    "session_id": session.session_id,
                },
                files={self._config.field_name: (file.name, self._buffer, file.content_type)},
            )
            self._buffer = None
            session.acknowledge(index)
            await self._report_progress(min(99, session.percent))

            if response.get("completed"):
                break

        if not response.get("completed"):
            raise ProtocolError("Chunked upload completed but no final response received")
        return response

    def _processing_session_id(self, response: Dict[str, Any]) -> Optional[str]:
        if response.get("session_id"):
            return response["session_id"]
        return self._session.session_id if self._session else None

    async def abort(self) -> None:
        template = self._config.endpoints.cancel_session
        if self._session is None or not template:
            return
        endpoint = template.format(session_id=self._session.session_id)
        try:
            await self._client.delete(endpoint)
            logger.info(f"Upload session {self._session.session_id} cancelled")
        except UploadError as e:
            logger.warning(f"Failed to cancel session {self._session.session_id} on server: {e}")

    def cleanup(self) -> None:
        self._buffer = None
        self._session = None
