"""Autosave client for the Ottowrite document API."""

from .api_client import (
    AutosaveAPIClient,
    AutosaveConflict,
    AutosaveError,
    AutosaveRejected,
    AutosaveUnavailable,
)
from .connectivity import ConnectivityMonitor, ConnectivityState
from .content_hash import compute_content_hash, extract_anchor_ids
from .session import AutosaveSession, AutosaveStatus, EditorState

__all__ = [
    "AutosaveAPIClient",
    "AutosaveConflict",
    "AutosaveError",
    "AutosaveRejected",
    "AutosaveUnavailable",
    "AutosaveSession",
    "AutosaveStatus",
    "ConnectivityMonitor",
    "ConnectivityState",
    "EditorState",
    "compute_content_hash",
    "extract_anchor_ids",
]
