"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List

from ..errors import ValidationError
from ..models import AssetDescriptor, UploadItem


@dataclass
class BatchResult:
    """Outcome of one handle_upload() or retry_failed() run."""
    succeeded: List[UploadItem] = field(default_factory=list)
    failed: List[UploadItem] = field(default_factory=list)
    cancelled: List[UploadItem] = field(default_factory=list)
    rejected: List[ValidationError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.cancelled)

    @property
    def all_success(self) -> bool:
        """True when the upload surface can be hidden: something succeeded and nothing failed."""
        return bool(self.succeeded) and not self.failed

    @property
    def assets(self) -> List[AssetDescriptor]:
        return [item.asset for item in self.succeeded if item.asset is not None]
