"""Client-side file checks run before anything is queued."""
import logging
from pathlib import Path
from urllib.parse import urlparse
from typing import Iterable, List, Optional, Tuple

from .errors import ValidationError
from .models import MB, UploadConfig, UploadFile

logger = logging.getLogger(__name__)

INVALID_TYPE = "Invalid file format. Please select a {kind} file."
UNSUPPORTED_FORMAT = "Unsupported format. Supported: {formats}."
FILE_TOO_LARGE = "File is too large ({size_mb}MB). Maximum size allowed is {max_mb}MB."
EMPTY_FILE = "File is empty."
UNREADABLE_FILE = "File could not be read ({reason})."
INVALID_URL = "Invalid URL format."


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class FileValidator:
    """Checks type and size against UploadConfig limits."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def errors_for(self, file: UploadFile) -> List[str]:
        config = self._config
        content_type = (file.content_type or "").lower()

        if file.source_url:
            # The server fetches remote files itself; only the URL can be checked here.
            return [] if _is_http_url(file.source_url) else [INVALID_URL]

        if file.size <= 0:
            return [EMPTY_FILE]

        if config.mime_prefix and not content_type.startswith(config.mime_prefix):
            return [INVALID_TYPE.format(kind=config.mime_prefix.rstrip("/"))]

        if config.allowed_extensions and file.extension not in config.allowed_extensions:
            return [UNSUPPORTED_FORMAT.format(formats=", ".join(config.allowed_extensions))]

        if config.allowed_mime_types and content_type and content_type not in config.allowed_mime_types:
            return [UNSUPPORTED_FORMAT.format(formats=", ".join(config.allowed_extensions or config.allowed_mime_types))]

        if config.max_file_size is not None and file.size > config.max_file_size:
            return [FILE_TOO_LARGE.format(
                size_mb=round(file.size / MB),
                max_mb=round(config.max_file_size / MB),
            )]

        return []

    def validate(self, file: UploadFile) -> UploadFile:
        errors = self.errors_for(file)
        if errors:
            raise ValidationError(file.name, errors)
        return file

    def open_path(self, path: Path) -> UploadFile:
        """Build an UploadFile from disk, rejecting paths that cannot be read."""
        try:
            return UploadFile.from_path(path)
        except OSError as e:
            raise ValidationError(str(path), [UNREADABLE_FILE.format(reason=e.strerror or e)]) from e

    def validate_url(self, url: str) -> str:
        if not _is_http_url(url):
            raise ValidationError(url or "", [INVALID_URL])
        return url

    def partition(self, files: Iterable[UploadFile]) -> Tuple[List[UploadFile], List[ValidationError]]:
        """Split files into accepted ones and the errors of rejected ones."""
        accepted: List[UploadFile] = []
        rejected: List[ValidationError] = []
        for file in files:
            try:
                accepted.append(self.validate(file))
            except ValidationError as e:
                logger.warning(f"Rejected {file.name}: {e}")
                rejected.append(e)
        return accepted, rejected
