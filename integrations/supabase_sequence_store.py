"""
Supabase-backed sequence store.

Snapshots go through the save_sequence_snapshot / get_sequence_history
RPCs; restore reads a history row directly. Module arrays live in the
projects table and are written with an optimistic version check.
"""

import json
from typing import Any, Optional
import httpx
import structlog

from config import settings, get_supabase_client
from config.database import ConnectionError as SupabaseConnectionError
from exceptions import (
    AppError,
    ConcurrentModificationError,
    DatabaseError,
    ProjectNotFoundError,
    RemoteExecutionError,
    StorageUnavailableError,
)
from integrations.sequence_store import ProjectModules, SequenceStore

logger = structlog.get_logger(__name__)


class SupabaseSequenceStore(SequenceStore):
    """SequenceStore over a Supabase project."""

    def __init__(self, client=None):
        self._client = client
        self.projects_table = settings.projects_table
        self.history_table = settings.history_table
        self.function_name = settings.import_function_name

    @property
    def db(self):
        """Client, connected on first use."""
        if self._client is None:
            try:
                self._client = get_supabase_client()
            except SupabaseConnectionError as e:
                raise StorageUnavailableError(str(e))
        return self._client

    def _fail(self, operation: str, e: Exception, **context) -> AppError:
        """Map a client exception to the error the caller should see."""
        if isinstance(e, AppError):
            return e
        logger.error(f"{operation}_failed", error=str(e), error_type=type(e).__name__, **context)
        if isinstance(e, httpx.TransportError):
            return StorageUnavailableError(
                f"Storage unreachable during {operation}",
                details={"original_error": str(e)}
            )
        return DatabaseError(operation, str(e))

    # ===================
    # SNAPSHOTS
    # ===================

    def save_snapshot(
        self,
        project_id: str,
        entries: list[dict],
        change_type: str,
        description: str,
        user_id: Optional[str],
        user_name: str,
    ) -> str:
        try:
            result = self.db.rpc(
                "save_sequence_snapshot",
                {
                    "p_project_id": project_id,
                    "p_modules": entries,
                    "p_change_type": change_type,
                    "p_description": description,
                    "p_user_id": user_id,
                    "p_user_name": user_name,
                }
            ).execute()
        except Exception as e:
            raise self._fail("save_snapshot", e, project_id=project_id)

        snapshot_id = result.data
        if isinstance(snapshot_id, list):
            snapshot_id = snapshot_id[0] if snapshot_id else None
        if isinstance(snapshot_id, dict):
            snapshot_id = snapshot_id.get("id") or snapshot_id.get("save_sequence_snapshot")
        if not snapshot_id:
            raise DatabaseError("save_snapshot", "RPC returned no snapshot id")

        logger.info(
            "snapshot_saved",
            project_id=project_id,
            snapshot_id=str(snapshot_id),
            change_type=change_type,
            module_count=len(entries)
        )
        return str(snapshot_id)

    def get_history(self, project_id: str, limit: int) -> list[dict]:
        try:
            result = self.db.rpc(
                "get_sequence_history",
                {"p_project_id": project_id, "p_limit": limit}
            ).execute()
        except Exception as e:
            raise self._fail("get_history", e, project_id=project_id)

        return result.data or []

    def fetch_snapshot_by_id(self, snapshot_id: str) -> Optional[dict]:
        try:
            result = (
                self.db.table(self.history_table)
                .select("*")
                .eq("id", snapshot_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise self._fail("fetch_snapshot", e, snapshot_id=snapshot_id)

        return result.data[0] if result.data else None

    # ===================
    # IMPORT FUNCTION
    # ===================

    def invoke_import(self, payload: dict[str, Any]) -> dict:
        action = payload.get("action")
        try:
            response = self.db.functions.invoke(
                self.function_name,
                invoke_options={"body": payload, "responseType": "json"}
            )
        except Exception as e:
            logger.error("import_function_failed", action=action, error=str(e))
            raise RemoteExecutionError(
                f"Import {action} failed: {e}",
                details={"action": action}
            )

        if isinstance(response, (bytes, str)):
            try:
                response = json.loads(response or "{}")
            except ValueError:
                raise RemoteExecutionError(
                    f"Import {action} failed: response is not JSON",
                    details={"action": action}
                )

        if isinstance(response, dict) and response.get("error"):
            logger.error("import_function_error", action=action, error=response["error"])
            raise RemoteExecutionError(
                f"Import {action} failed: {response['error']}",
                details={"action": action}
            )

        return response

    # ===================
    # PROJECT MODULES
    # ===================

    def get_project_modules(self, project_id: str) -> ProjectModules:
        try:
            result = (
                self.db.table(self.projects_table)
                .select("id, name, modules, modules_version")
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise self._fail("get_project_modules", e, project_id=project_id)

        if not result.data:
            raise ProjectNotFoundError(project_id)

        row = result.data[0]
        return ProjectModules(
            project_id=str(row["id"]),
            name=row.get("name"),
            modules=row.get("modules") or [],
            version=row.get("modules_version") or 0,
        )

    def save_project_modules(
        self,
        project_id: str,
        modules: list[dict],
        expected_version: int,
    ) -> int:
        new_version = expected_version + 1
        try:
            result = (
                self.db.table(self.projects_table)
                .update({"modules": modules, "modules_version": new_version})
                .eq("id", project_id)
                .eq("modules_version", expected_version)
                .execute()
            )
        except Exception as e:
            raise self._fail("save_project_modules", e, project_id=project_id)

        if not result.data:
            logger.warning(
                "project_modules_version_mismatch",
                project_id=project_id,
                expected_version=expected_version
            )
            raise ConcurrentModificationError(project_id, expected_version)

        logger.info(
            "project_modules_saved",
            project_id=project_id,
            module_count=len(modules),
            version=new_version
        )
        return new_version


# Singleton instance
_store: Optional[SupabaseSequenceStore] = None


def get_sequence_store() -> SupabaseSequenceStore:
    """Get or create the default store."""
    global _store
    if _store is None:
        _store = SupabaseSequenceStore()
    return _store
