"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.module_import import router as module_import_router
from routes.sequence_history import router as sequence_history_router
from routes.sequences import router as sequences_router

__all__ = [
    "module_import_router",
    "sequence_history_router",
    "sequences_router",
]
