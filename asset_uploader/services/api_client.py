"""HTTP adapter for upload, status and delete requests."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from ..errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)

BytesSentCallback = Callable[[int, int], Any]


class _ProgressStream(httpx.AsyncByteStream):
    """Wraps a request body and reports bytes handed to the transport."""

    def __init__(self, stream, total: int, callback: BytesSentCallback):
        self._stream = stream
        self._total = total
        self._callback = callback

    async def __aiter__(self):
        sent = 0
        async for chunk in self._stream:
            sent += len(chunk)
            result = self._callback(sent, self._total)
            if inspect.isawaitable(result):
                await result
            yield chunk

    async def aclose(self) -> None:
        close = getattr(self._stream, "aclose", None)
        if close is not None:
            await close()


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def parse_upload_response(response: httpx.Response) -> Dict[str, Any]:
    """
    Turn an upload-style response into its JSON body.

    Non-2xx raises TransportError with the server message when there is one.
    A 2xx body that is not a JSON object, or that says success 0/false,
    raises ProtocolError.
    """
    payload = _json_or_none(response)
    if not response.is_success:
        message = payload.get("message") if isinstance(payload, dict) else None
        raise TransportError(
            message or f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )
    if not isinstance(payload, dict):
        raise ProtocolError(f"Invalid response format: {response.status_code}")
    if payload.get("success") in (0, False):
        raise ProtocolError(payload.get("message") or "Upload failed")
    return payload


class HTTPAPIClient:
    """
    HTTP client adapter for upload endpoints.

    Translates httpx failures into TransportError so nothing above this layer
    deals with httpx exception types. Uploads are sent once; idempotent calls
    (GET, DELETE) retry 5xx and transport errors.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 60,
        headers: Optional[Dict[str, str]] = None,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._max_retries = max(1, max_retries)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    async def post_form(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        on_bytes_sent: Optional[BytesSentCallback] = None,
    ) -> Dict[str, Any]:
        """POST a multipart/form body and return the parsed JSON payload."""
        client = self._require_client()
        request = client.build_request("POST", endpoint, data=data, files=files)
        if on_bytes_sent is not None:
            total = int(request.headers.get("Content-Length") or 0)
            request.stream = _ProgressStream(request.stream, total, on_bytes_sent)

        try:
            response = await client.send(request)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {endpoint} timed out") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Network error on POST {endpoint}: {exc}") from exc

        return parse_upload_response(response)

    async def _send_idempotent(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        client = self._require_client()
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, endpoint, **kwargs)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    logger.debug(f"{method} {endpoint} -> {response.status_code}, retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    payload = _json_or_none(response)
                    detail = payload.get("message") if isinstance(payload, dict) else None
                    raise TransportError(
                        detail or f"API error {response.status_code} on {method} {endpoint}",
                        status_code=response.status_code,
                    )

                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise TransportError(f"Network error on {method} {endpoint}: {exc}") from exc

        raise TransportError(
            f"Failed to {method} {endpoint} after {self._max_retries} attempts: {last_exception}"
        )

    async def get_json(self, endpoint: str) -> Dict[str, Any]:
        response = await self._send_idempotent("GET", endpoint)
        payload = _json_or_none(response)
        if not isinstance(payload, dict):
            raise ProtocolError(f"Invalid response format on GET {endpoint}: {response.status_code}")
        return payload

    async def delete(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> int:
        """DELETE with an optional JSON body. Returns the status code."""
        response = await self._send_idempotent("DELETE", endpoint, json=json)
        return response.status_code
