"""
Storage interface for build sequences.

Services receive a SequenceStore instead of reaching for a client
themselves. The Supabase implementation lives in
integrations.supabase_sequence_store; tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ProjectModules:
    """A project's stored modules array and its write version."""
    project_id: str
    modules: list[dict] = field(default_factory=list)
    version: int = 0
    name: Optional[str] = None


class SequenceStore(ABC):
    """
    Narrow storage surface used by the sequence services.

    Snapshot rows are append-only: there is no update or delete.
    A store missing any of these methods cannot be instantiated.
    """

    @abstractmethod
    def save_snapshot(
        self,
        project_id: str,
        entries: list[dict],
        change_type: str,
        description: str,
        user_id: Optional[str],
        user_name: str,
    ) -> str:
        """Append a snapshot row and return its id."""
        ...

    @abstractmethod
    def get_history(self, project_id: str, limit: int) -> list[dict]:
        """Most recent snapshot rows for a project, newest first."""
        ...

    @abstractmethod
    def fetch_snapshot_by_id(self, snapshot_id: str) -> Optional[dict]:
        """One snapshot row, or None if it does not exist."""
        ...

    @abstractmethod
    def invoke_import(self, payload: dict[str, Any]) -> dict:
        """Run the hosted analyze/execute import function."""
        ...

    @abstractmethod
    def get_project_modules(self, project_id: str) -> ProjectModules:
        """Read a project's modules array with its version."""
        ...

    @abstractmethod
    def save_project_modules(
        self,
        project_id: str,
        modules: list[dict],
        expected_version: int,
    ) -> int:
        """
        Replace a project's modules array.

        Returns the new version. Fails with ConcurrentModificationError
        when the stored version is no longer ``expected_version``.
        """
        ...
