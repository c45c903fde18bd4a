"""
Result Registrar - turn server responses into AssetDescriptors and attach them.

A 2xx response is only a success if it carries a usable URL, either at the
top level, nested under "file", or resolvable from "file.filename" through
the secure file endpoint.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from .errors import ProtocolError
from .models import AssetDescriptor, UploadConfig
from .protocols import IAssetHost

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class ResultRegistrar:
    """Validates upload responses and commits the resulting assets to a host block."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def resolve_url(self, response: Dict[str, Any]) -> Optional[str]:
        if response.get("url"):
            return str(response["url"])

        nested = response.get("file")
        if not isinstance(nested, dict):
            return None
        if nested.get("url"):
            return str(nested["url"])

        filename = nested.get("filename")
        endpoint = self._config.secure_file_endpoint
        if filename and endpoint:
            return f"{endpoint.rstrip('/')}/videos/{quote(str(filename))}"
        return None

    def normalize(self, response: Dict[str, Any]) -> AssetDescriptor:
        """Build an AssetDescriptor, raising ProtocolError when no URL is present."""
        if not isinstance(response, dict):
            raise ProtocolError("Invalid response format")

        url = self.resolve_url(response)
        if not url:
            raise ProtocolError("No URL in response")

        nested = response.get("file") if isinstance(response.get("file"), dict) else {}
        return AssetDescriptor(
            url=url,
            caption=response.get("caption") or "",
            width=_as_int(response.get("width")),
            height=_as_int(response.get("height")),
            duration=_as_float(response.get("duration")),
            size=_as_int(response.get("size")),
            format=_as_str(response.get("format")),
            aspect_ratio=_as_str(response.get("aspect_ratio")),
            thumbnail=_as_str(response.get("thumbnail") or nested.get("thumbnail")),
        )

    def commit(self, host: Optional[IAssetHost], asset: AssetDescriptor) -> AssetDescriptor:
        """Attach an asset to its owning block. A missing host is allowed (headless use)."""
        if host is not None:
            host.add_asset(asset)
            logger.debug(f"Committed asset {asset.url}")
        return asset
