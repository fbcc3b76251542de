"""
External storage integrations.
"""

from integrations.sequence_store import ProjectModules, SequenceStore

__all__ = [
    "ProjectModules",
    "SequenceStore",
]
