"""Services for asset_uploader."""
from .api_client import HTTPAPIClient, parse_upload_response
from .cleanup import DeletionService, server_relative_path

__all__ = [
    "HTTPAPIClient",
    "parse_upload_response",
    "DeletionService",
    "server_relative_path",
]
