"""Collection Service - typed collections and their records in SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.collection import Collection, CollectionCreate, FieldDefinition, Record
from ..models.scope import TargetScope
from .database import DatabaseService
from .errors import EntityWriteError, InvalidReferenceError, NotFoundError

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        icon=row["icon"],
        description=row["description"],
        fields=[FieldDefinition.model_validate(f) for f in json.loads(row["fields"])],
        available_global=bool(row["available_global"]),
        available_in_workspaces=json.loads(row["available_in_workspaces"]),
        available_in_projects=json.loads(row["available_in_projects"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        id=row["id"],
        collection_id=row["collection_id"],
        name=row["name"],
        workspace_id=row["workspace_id"],
        project_id=row["project_id"],
        field_values=json.loads(row["field_values"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _reachable(collection: Collection, scope: TargetScope) -> bool:
    """Whether a collection is visible from a scope."""
    if collection.available_global:
        return True
    if scope.project_id and (
        scope.project_id in collection.available_in_projects
        or "*" in collection.available_in_projects
    ):
        return True
    if scope.workspace_id and (
        scope.workspace_id in collection.available_in_workspaces
        or "*" in collection.available_in_workspaces
    ):
        return True
    return False


class CollectionService:
    """Service for collection and record CRUD operations."""

    def __init__(self, db_service: DatabaseService | None = None):
        """Initialize with database service."""
        self._db = db_service or DatabaseService()

    def create_collection(self, payload: CollectionCreate) -> Collection:
        """Insert a collection. Field definition ids must be unique."""
        field_ids = [field.id for field in payload.fields]
        if len(field_ids) != len(set(field_ids)):
            raise InvalidReferenceError(
                "Field definition ids must be unique", {"field_ids": field_ids}
            )

        collection_id = uuid.uuid4().hex
        created = _now()
        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO collections (
                        id, name, icon, description, fields, available_global,
                        available_in_workspaces, available_in_projects, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        collection_id,
                        payload.name,
                        payload.icon,
                        payload.description,
                        json.dumps([f.model_dump(mode="json") for f in payload.fields]),
                        int(payload.available_global),
                        json.dumps(payload.available_in_workspaces),
                        json.dumps(payload.available_in_projects),
                        created,
                    ),
                )
        except sqlite3.Error as exc:
            logger.error(f"Failed to create collection '{payload.name}': {exc}")
            raise EntityWriteError(f"Failed to create collection: {exc}") from exc
        finally:
            conn.close()

        logger.info(f"Created collection {collection_id} ({payload.name})")
        return Collection(
            id=collection_id,
            created_at=datetime.fromisoformat(created),
            **payload.model_dump(),
        )

    def get_collection(self, collection_id: str) -> Collection:
        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM collections WHERE id = ?", (collection_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(
                f"Collection {collection_id} not found", {"collection_id": collection_id}
            )
        return _row_to_collection(row)

    def list_collections(self, scope: Optional[TargetScope] = None) -> List[Collection]:
        """Collections reachable from a scope (all collections when scope is None)."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM collections ORDER BY created_at, name"
            ).fetchall()
        finally:
            conn.close()
        collections = [_row_to_collection(row) for row in rows]
        if scope is None:
            return collections
        return [collection for collection in collections if _reachable(collection, scope)]

    def find_collection_by_name(self, scope: TargetScope, name: str) -> Optional[Collection]:
        """Case-insensitive name lookup among the collections reachable from a scope."""
        wanted = name.strip().lower()
        for collection in self.list_collections(scope):
            if collection.name.strip().lower() == wanted:
                return collection
        return None

    def create_record(
        self,
        collection_id: str,
        name: str,
        field_values: Optional[Dict[str, Any]] = None,
        workspace_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Record:
        """Insert a record.

        Every key of ``field_values`` must be a field-definition id of the
        collection schema at the time of the write.
        """
        collection = self.get_collection(collection_id)
        values = dict(field_values or {})
        unknown = sorted(set(values) - collection.field_ids())
        if unknown:
            raise InvalidReferenceError(
                f"Unknown field ids for collection {collection_id}: {', '.join(unknown)}",
                {"collection_id": collection_id, "field_ids": unknown},
            )

        created = datetime.now(timezone.utc)
        record = Record(
            id=uuid.uuid4().hex,
            collection_id=collection_id,
            name=name,
            workspace_id=workspace_id,
            project_id=project_id,
            field_values=values,
            created_at=created,
        )
        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO records (
                        id, collection_id, name, workspace_id, project_id, field_values, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        collection_id,
                        name,
                        workspace_id,
                        project_id,
                        json.dumps(record.field_values),
                        created.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            logger.error(f"Failed to create record '{name}' in {collection_id}: {exc}")
            raise EntityWriteError(f"Failed to create record: {exc}") from exc
        finally:
            conn.close()

        logger.debug(f"Created record {record.id} in collection {collection_id}")
        return record

    def get_record(self, record_id: str) -> Record:
        conn = self._db.connect()
        try:
            row = conn.execute("SELECT * FROM records WHERE id = ?", (record_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"Record {record_id} not found", {"record_id": record_id})
        return _row_to_record(row)

    def list_records(self, collection_id: str) -> List[Record]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM records WHERE collection_id = ? ORDER BY created_at, rowid",
                (collection_id,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_record(row) for row in rows]


def get_collection_service() -> CollectionService:
    """Dependency provider bound to the configured database."""
    return CollectionService(DatabaseService())


__all__ = ["CollectionService", "get_collection_service"]
