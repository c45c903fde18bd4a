"""Orchestrator package - the upload queue and its batch results."""
from .core import UploadOrchestrator
from .models import BatchResult

__all__ = ["UploadOrchestrator", "BatchResult"]
