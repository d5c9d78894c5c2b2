"""API routes."""

from .documents import router as documents_router
from .autosave import router as autosave_router
from .snapshots import router as snapshots_router
from .branches import router as branches_router

__all__ = [
    "documents_router",
    "autosave_router",
    "snapshots_router",
    "branches_router",
]
