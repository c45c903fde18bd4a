"""
Models for asset_uploader.

Payload handles, per-item state, transfer bookkeeping and configuration.
Configuration objects are immutable; UploadItem and TransferSession are the
only mutable records and are owned by the orchestrator and the strategy it
drives.
"""
import asyncio
import math
import mimetypes
import uuid
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple

from .errors import InvalidTransitionError

MB = 1024 * 1024


class UploadStatus(Enum):
    """Lifecycle state of an upload item."""
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class Phase(Enum):
    """Named pipeline stages shown by progress UIs."""
    SINGLE_UPLOAD = "single_upload"
    CHUNK_UPLOAD = "chunk_upload"
    VIDEO_PROCESSING = "video_processing"
    COMPLETE = "complete"
    ERROR = "error"


PHASE_MESSAGES = {
    Phase.SINGLE_UPLOAD: "Uploading...",
    Phase.CHUNK_UPLOAD: "Uploading in chunks...",
    Phase.VIDEO_PROCESSING: "Processing video...",
    Phase.COMPLETE: "Upload complete!",
    Phase.ERROR: "Upload failed",
}


@dataclass(frozen=True)
class UploadFile:
    """Read-only handle on a file selected for upload."""
    name: str
    size: int
    content_type: str = "application/octet-stream"
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)
    source_url: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "UploadFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type or guessed or "application/octet-stream",
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: Optional[str] = None) -> "UploadFile":
        guessed, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            size=len(data),
            content_type=content_type or guessed or "application/octet-stream",
            data=bytes(data),
        )

    @classmethod
    def from_url(cls, url: str) -> "UploadFile":
        """Handle for a remote file the server imports itself."""
        name = url.rstrip("/").split("/")[-1].split("?")[0] or "pasted-file"
        guessed, _ = mimetypes.guess_type(name)
        return cls(name=name, size=0, content_type=guessed or "application/octet-stream", source_url=url)

    @property
    def extension(self) -> str:
        return self.name.rsplit(".", 1)[-1].lower() if "." in self.name else ""

    async def read_range(self, start: int, end: int) -> bytes:
        """Read bytes [start, end) without blocking the event loop."""
        if self.data is not None:
            return self.data[start:end]
        if self.path is None:
            raise ValueError(f"UploadFile {self.name!r} has neither path nor data")

        def _read() -> bytes:
            with open(self.path, "rb") as f:
                f.seek(start)
                return f.read(end - start)

        return await asyncio.to_thread(_read)

    async def read_all(self) -> bytes:
        return await self.read_range(0, self.size)


@dataclass(frozen=True)
class AssetDescriptor:
    """Normalized, persistable record of an uploaded file."""
    url: str
    caption: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    size: Optional[int] = None
    format: Optional[str] = None
    aspect_ratio: Optional[str] = None
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetDescriptor":
        known = {name: data.get(name) for name in cls.__dataclass_fields__}
        known["caption"] = known.get("caption") or ""
        return cls(**known)

    def with_caption(self, caption: str) -> "AssetDescriptor":
        return replace(self, caption=caption)


@dataclass
class TransferSession:
    """Bookkeeping for one chunked transfer. Lives only as long as the transfer."""
    session_id: str
    file_size: int
    chunk_size: int
    total_chunks: int
    chunks_sent: int = 0

    @classmethod
    def open(cls, session_id: str, file_size: int, chunk_size: int) -> "TransferSession":
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        total = max(1, math.ceil(file_size / chunk_size))
        return cls(session_id=session_id, file_size=file_size, chunk_size=chunk_size, total_chunks=total)

    def byte_range(self, index: int) -> Tuple[int, int]:
        start = index * self.chunk_size
        return start, min(start + self.chunk_size, self.file_size)

    def acknowledge(self, index: int) -> None:
        if index != self.chunks_sent:
            raise ValueError(f"chunk {index} acknowledged out of order (expected {self.chunks_sent})")
        self.chunks_sent += 1

    @property
    def is_last(self) -> bool:
        return self.chunks_sent >= self.total_chunks

    @property
    def percent(self) -> int:
        return round(self.chunks_sent / self.total_chunks * 100)


def generate_item_id() -> str:
    return f"upload-{uuid.uuid4().hex}"


@dataclass
class UploadItem:
    """
    One file tracked through the queue.

    Transitions: pending -> uploading -> success | error, and error -> pending
    on retry. Nothing leaves success except removal from the queue.
    """
    file: UploadFile
    id: str = field(default_factory=generate_item_id)
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    retry_count: int = 0
    asset: Optional[AssetDescriptor] = None

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def is_terminal(self) -> bool:
        return self.status in (UploadStatus.SUCCESS, UploadStatus.ERROR)

    def _require(self, *allowed: UploadStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(
                f"{self.id}: cannot leave {self.status.value} "
                f"(expected {', '.join(s.value for s in allowed)})"
            )

    def start(self) -> None:
        self._require(UploadStatus.PENDING)
        self.status = UploadStatus.UPLOADING
        self.progress = 0
        self.error = None

    def update_progress(self, percent: int) -> bool:
        """Apply a progress value. Returns False when it would move backwards."""
        self._require(UploadStatus.UPLOADING)
        percent = max(0, min(100, int(percent)))
        if percent < self.progress:
            return False
        self.progress = percent
        return True

    def succeed(self, asset: AssetDescriptor) -> None:
        self._require(UploadStatus.UPLOADING)
        self.status = UploadStatus.SUCCESS
        self.progress = 100
        self.asset = asset
        self.error = None

    def fail(self, message: str) -> None:
        self._require(UploadStatus.UPLOADING)
        self.status = UploadStatus.ERROR
        self.error = message or "Upload failed"

    def reset_for_retry(self) -> None:
        self._require(UploadStatus.ERROR)
        self.retry_count += 1
        self.status = UploadStatus.PENDING
        self.progress = 0
        self.error = None


@dataclass(frozen=True)
class UploadEndpoints:
    """Server endpoints. Optional ones disable the matching feature when unset."""
    upload: str = "/upload"
    chunk: Optional[str] = None
    delete: str = "/delete"
    by_url: Optional[str] = None
    create_session: Optional[str] = None
    session_status: Optional[str] = None
    cancel_session: Optional[str] = None  # template with {session_id}

    @property
    def chunk_endpoint(self) -> str:
        return self.chunk or self.upload


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    endpoints: UploadEndpoints = field(default_factory=UploadEndpoints)
    field_name: str = "file"
    single_shot_threshold: int = 5 * MB
    chunk_size: int = 10 * MB
    max_file_size: Optional[int] = None
    allowed_extensions: Tuple[str, ...] = ()
    allowed_mime_types: Tuple[str, ...] = ()
    mime_prefix: Optional[str] = None
    request_timeout: float = 60.0
    poll_interval: float = 0.5
    processing_timeout: float = 600.0
    storage_marker: str = "/storage/"
    delete_path_prefix: Optional[str] = None
    secure_file_endpoint: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    speed_window: int = 8
    min_samples_for_eta: int = 3

    @classmethod
    def for_video(cls, **overrides) -> "UploadConfig":
        defaults = dict(
            endpoints=UploadEndpoints(upload="/video-upload", chunk="/video-upload/chunk", delete="/delete-video"),
            field_name="video",
            max_file_size=250 * MB,
            allowed_extensions=("mp4", "webm", "ogg", "ogv"),
            allowed_mime_types=("video/mp4", "video/webm", "video/ogg"),
            mime_prefix="video/",
            delete_path_prefix="documents/videos/",
        )
        defaults.update(overrides)
        return cls(**defaults)

    @classmethod
    def for_image(cls, **overrides) -> "UploadConfig":
        defaults = dict(
            endpoints=UploadEndpoints(upload="/document-image-upload", delete="/delete-image"),
            field_name="image",
            mime_prefix="image/",
            delete_path_prefix="documents/",
        )
        defaults.update(overrides)
        return cls(**defaults)
