"""
ModelRepository - CRUD over 3D model records.

Records are returned as plain dicts using the API field names
(id, name, filePath, fileType, thumbnailPath, size, createdAt).
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set

import structlog

from app.database import Database
from app.errors import NotFound, ValidationFailure, from_store_error

logger = structlog.get_logger()

# API field -> column, for the fields a caller may patch
UPDATABLE_FIELDS = {
    "name": "name",
    "file_path": "file_path",
    "thumbnail_path": "thumbnail_path",
    "size": "size",
}


MAX_MODEL_ID = 2**63 - 1


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def file_type_for(file_path: str) -> str:
    """'uploads/model.glb' -> 'GLB'; no extension -> ''"""
    return PurePosixPath(file_path.replace("\\", "/")).suffix[1:].upper()


def parse_model_id(raw: Any, label: str = "model ID") -> int:
    """Accept a positive int or a string of digits, reject everything else."""
    if isinstance(raw, bool):
        raise ValidationFailure(f"Invalid {label}.")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.strip().isascii() and raw.strip().isdigit():
        value = int(raw.strip())
    else:
        raise ValidationFailure(f"Invalid {label}.")
    # SQLite INTEGER is a signed 64-bit value
    if value <= 0 or value > MAX_MODEL_ID:
        raise ValidationFailure(f"Invalid {label}.")
    return value


def _size_to_text(size: Any) -> Optional[str]:
    if size is None or size == "":
        return None
    return str(size)


def _require_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationFailure(message)
    return value


class ModelRepository:
    """manages model records in the backing store"""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _prepare_model_record(row: sqlite3.Row) -> Dict[str, Any]:
        """Convert DB row to the API record shape"""
        return {
            "id": row["id"],
            "name": row["name"],
            "filePath": row["file_path"],
            "fileType": row["file_type"],
            "thumbnailPath": row["thumbnail_path"],
            "size": row["size"],
            "createdAt": row["created_at"],
        }

    def list(self) -> List[Dict[str, Any]]:
        """all models, newest first"""
        try:
            with self.db.connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM models ORDER BY created_at DESC, id DESC"
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("models_list_failed", error=str(e))
            raise from_store_error(e) from e
        return [self._prepare_model_record(row) for row in rows]

    def get(self, model_id: Any) -> Dict[str, Any]:
        """Fetch a single model by id; NotFound if it doesn't exist"""
        model_id = parse_model_id(model_id)
        try:
            with self.db.connection() as conn:
                row = conn.execute("SELECT * FROM models WHERE id = ?", (model_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error("model_get_failed", model_id=model_id, error=str(e))
            raise from_store_error(e) from e
        if row is None:
            raise NotFound("Model not found")
        return self._prepare_model_record(row)

    def create(
        self,
        name: Any,
        file_path: Any,
        thumbnail_path: Optional[str] = None,
        size: Any = None,
    ) -> Dict[str, Any]:
        """add a new model record; fileType is derived from file_path"""
        name = _require_text(name, "Name and filePath are required.")
        file_path = _require_text(file_path, "Name and filePath are required.")

        values = (
            name,
            file_path,
            file_type_for(file_path),
            thumbnail_path or None,
            _size_to_text(size),
            utc_now_iso(),
        )
        try:
            with self.db.connection() as conn:
                cursor = conn.execute(
                    """INSERT INTO models (name, file_path, file_type, thumbnail_path, size, created_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    values,
                )
                row = conn.execute(
                    "SELECT * FROM models WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("model_create_failed", error=str(e))
            raise from_store_error(e) from e

        record = self._prepare_model_record(row)
        logger.info("model_created", model_id=record["id"], file_type=record["fileType"])
        return record

    def update(self, model_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a sparse patch.

        ``fields`` only holds the keys the caller actually supplied; a key with
        value None is applied (clearing the column), a missing key is left
        alone. Changing file_path recomputes file_type.
        """
        model_id = parse_model_id(model_id)

        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationFailure(f"Unknown update fields: {', '.join(sorted(unknown))}")
        if not fields:
            raise ValidationFailure("No update data provided.")

        assignments: Dict[str, Any] = {}
        if "name" in fields:
            assignments["name"] = _require_text(fields["name"], "Name must not be empty.")
        if "thumbnail_path" in fields:
            assignments["thumbnail_path"] = fields["thumbnail_path"] or None
        if "size" in fields:
            assignments["size"] = _size_to_text(fields["size"])
        if "file_path" in fields:
            file_path = _require_text(fields["file_path"], "filePath must not be empty.")
            assignments["file_path"] = file_path
            assignments["file_type"] = file_type_for(file_path)

        set_clause = ", ".join(f"{column} = ?" for column in assignments)
        try:
            with self.db.connection() as conn:
                cursor = conn.execute(
                    f"UPDATE models SET {set_clause} WHERE id = ?",
                    (*assignments.values(), model_id),
                )
                if cursor.rowcount == 0:
                    raise NotFound("Model not found")
                row = conn.execute("SELECT * FROM models WHERE id = ?", (model_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error("model_update_failed", model_id=model_id, error=str(e))
            raise from_store_error(e) from e

        logger.info("model_updated", model_id=model_id, fields=sorted(assignments))
        return self._prepare_model_record(row)

    def delete(self, model_id: Any) -> None:
        """remove the record; NotFound if it doesn't exist"""
        model_id = parse_model_id(model_id)
        try:
            with self.db.connection() as conn:
                cursor = conn.execute("DELETE FROM models WHERE id = ?", (model_id,))
                if cursor.rowcount == 0:
                    raise NotFound("Model not found")
        except sqlite3.Error as e:
            logger.error("model_delete_failed", model_id=model_id, error=str(e))
            raise from_store_error(e) from e
        logger.info("model_deleted", model_id=model_id)

    def referenced_paths(self) -> Set[str]:
        """every filePath / thumbnailPath currently stored on a model"""
        try:
            with self.db.connection() as conn:
                rows = conn.execute("SELECT file_path, thumbnail_path FROM models").fetchall()
        except sqlite3.Error as e:
            raise from_store_error(e) from e
        paths: Set[str] = set()
        for row in rows:
            paths.update(p for p in (row["file_path"], row["thumbnail_path"]) if p)
        return paths
