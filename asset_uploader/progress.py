"""
Progress/Status Bridge.

Turns a strategy's raw (percent) and (message, phase) stream into a closed
set of phases plus speed and ETA. It only sees the uniform strategy
contract and never needs to know whether a transfer is chunked.
"""
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional, Tuple

from .models import Phase, PHASE_MESSAGES

# Server-side sub-phases that are all shown as "processing".
PROCESSING_PHASES = frozenset({
    "chunk_assembly",
    "conversion",
    "metadata_extraction",
    "thumbnail_generation",
    "video_processing",
})

UPLOAD_PHASES = (Phase.SINGLE_UPLOAD, Phase.CHUNK_UPLOAD)


def map_phase(raw: Optional[str], previous: Phase) -> Phase:
    """Map a raw phase name onto the closed Phase set; unknown names keep the previous phase."""
    if raw in PROCESSING_PHASES:
        return Phase.VIDEO_PROCESSING
    try:
        return Phase(raw)
    except ValueError:
        return previous


@dataclass(frozen=True)
class ProgressSnapshot:
    """What a progress UI needs to render one item."""
    phase: Phase
    percent: int
    message: str
    bytes_sent: int
    total_bytes: int
    speed: Optional[float] = None  # bytes per second
    eta: Optional[float] = None  # seconds
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (Phase.COMPLETE, Phase.ERROR)


class ProgressBridge:
    """Per-item progress state with sliding-window speed and ETA."""

    def __init__(
        self,
        total_bytes: int,
        window: int = 8,
        min_samples_for_eta: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._total = max(0, int(total_bytes))
        self._min_samples = max(2, min_samples_for_eta)
        self._clock = clock
        self._samples: Deque[Tuple[float, int]] = deque(maxlen=max(2, window))
        self._phase = Phase.SINGLE_UPLOAD
        self._percent = 0
        self._message = PHASE_MESSAGES[Phase.SINGLE_UPLOAD]
        self._error: Optional[str] = None
        self._samples.append((self._clock(), 0))

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def percent(self) -> int:
        return self._percent

    @property
    def bytes_sent(self) -> int:
        return self._samples[-1][1]

    @property
    def speed(self) -> Optional[float]:
        if len(self._samples) < 2:
            return None
        (t0, b0), (t1, b1) = self._samples[0], self._samples[-1]
        elapsed = t1 - t0
        if elapsed <= 0:
            return None
        return (b1 - b0) / elapsed

    @property
    def eta(self) -> Optional[float]:
        if self._phase not in UPLOAD_PHASES or len(self._samples) < self._min_samples:
            return None
        speed = self.speed
        if not speed or speed <= 0:
            return None
        return max(0.0, (self._total - self.bytes_sent) / speed)

    def on_progress(self, percent: int) -> ProgressSnapshot:
        percent = max(0, min(100, int(percent)))
        if percent > self._percent and self._phase not in (Phase.VIDEO_PROCESSING, Phase.ERROR):
            self._percent = percent
            self._samples.append((self._clock(), self._total * percent // 100))
        return self.snapshot()

    def on_status(self, message: str, raw_phase: Optional[str]) -> ProgressSnapshot:
        if self._phase is Phase.ERROR:
            return self.snapshot()
        self._phase = map_phase(raw_phase, self._phase)
        self._message = message or PHASE_MESSAGES[self._phase]
        if self._phase in (Phase.VIDEO_PROCESSING, Phase.COMPLETE):
            self._percent = 100
        return self.snapshot()

    def on_error(self, message: str) -> ProgressSnapshot:
        self._phase = Phase.ERROR
        self._error = message or PHASE_MESSAGES[Phase.ERROR]
        self._message = PHASE_MESSAGES[Phase.ERROR]
        return self.snapshot()

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            phase=self._phase,
            percent=self._percent,
            message=self._message,
            bytes_sent=self.bytes_sent,
            total_bytes=self._total,
            speed=self.speed,
            eta=self.eta,
            error=self._error,
        )


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.1f} {units[unit_idx]}"


def format_speed(bytes_per_second: Optional[float]) -> str:
    if not bytes_per_second or not math.isfinite(bytes_per_second):
        return "0 MB/s"
    mbps = bytes_per_second / (1024 * 1024)
    if mbps >= 1:
        return f"{mbps:.1f} MB/s"
    return f"{bytes_per_second / 1024:.1f} KB/s"


def format_eta(seconds: Optional[float]) -> str:
    if not seconds or not math.isfinite(seconds):
        return "--"
    if seconds < 60:
        return f"{math.ceil(seconds)}s"
    if seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes}m {math.ceil(seconds % 60)}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"
