"""Shared utilities."""
from .events import EventEmitter, EditorSignals

__all__ = ["EventEmitter", "EditorSignals"]
