"""
MaterialRepository - CRUD over material records, each scoped to a parent model.

The parent check is done by the store (see schema triggers), not here: a
create against a missing model comes back as a ReferentialFailure.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Set

import structlog

from app.database import Database
from app.errors import NotFound, ValidationFailure, from_store_error
from app.model_repository import parse_model_id, utc_now_iso

logger = structlog.get_logger()


class MaterialRepository:
    """manages material records in the backing store"""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _prepare_material_record(row: sqlite3.Row) -> Dict[str, Any]:
        try:
            data = json.loads(row["data"]) if row["data"] else {}
        except json.JSONDecodeError as e:
            logger.error("material_data_corrupt", material_id=row["id"], error=str(e))
            data = {}
        return {
            "id": row["id"],
            "modelId": row["model_id"],
            "name": row["name"],
            "data": data,
            "thumbnailPath": row["thumbnail_path"],
            "createdAt": row["created_at"],
        }

    def _select(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            with self.db.connection() as conn:
                return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error("materials_query_failed", error=str(e))
            raise from_store_error(e) from e

    def list(self) -> List[Dict[str, Any]]:
        """all materials, newest first"""
        rows = self._select("SELECT * FROM materials ORDER BY created_at DESC, rowid DESC")
        return [self._prepare_material_record(row) for row in rows]

    def list_by_model(self, model_id: Any) -> List[Dict[str, Any]]:
        """materials for one model, newest first (empty if the model is unknown)"""
        model_id = parse_model_id(model_id)
        rows = self._select(
            "SELECT * FROM materials WHERE model_id = ? ORDER BY created_at DESC, rowid DESC",
            (model_id,),
        )
        return [self._prepare_material_record(row) for row in rows]

    def get(self, material_id: Any) -> Dict[str, Any]:
        if not material_id:
            raise NotFound("Material not found")
        rows = self._select("SELECT * FROM materials WHERE id = ?", (str(material_id),))
        if not rows:
            raise NotFound("Material not found")
        return self._prepare_material_record(rows[0])

    def create(
        self,
        model_id: Any,
        name: Any,
        data: Optional[Dict[str, Any]] = None,
        thumbnail_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """add a material under an existing model"""
        if model_id is None or model_id == "" or not name:
            raise ValidationFailure("model_id and name are required.")
        model_id = parse_model_id(model_id, label="model_id")
        if not isinstance(name, str):
            raise ValidationFailure("name must be a string.")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationFailure("data must be a JSON object.")

        material_id = str(uuid.uuid4())
        values = (
            material_id,
            model_id,
            name,
            json.dumps(data),
            thumbnail_path or None,
            utc_now_iso(),
        )
        try:
            with self.db.connection() as conn:
                conn.execute(
                    """INSERT INTO materials (id, model_id, name, data, thumbnail_path, created_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    values,
                )
                row = conn.execute("SELECT * FROM materials WHERE id = ?", (material_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error("material_create_failed", model_id=model_id, error=str(e))
            raise from_store_error(e, "Failed to add material.") from e

        logger.info("material_created", material_id=material_id, model_id=model_id)
        return self._prepare_material_record(row)

    def delete(self, material_id: Any) -> None:
        """remove the record; NotFound if it doesn't exist"""
        if not material_id:
            raise NotFound("Material not found")
        try:
            with self.db.connection() as conn:
                cursor = conn.execute("DELETE FROM materials WHERE id = ?", (str(material_id),))
                if cursor.rowcount == 0:
                    raise NotFound("Material not found")
        except sqlite3.Error as e:
            logger.error("material_delete_failed", material_id=material_id, error=str(e))
            raise from_store_error(e) from e
        logger.info("material_deleted", material_id=material_id)

    def referenced_paths(self) -> Set[str]:
        """every thumbnailPath currently stored on a material"""
        rows = self._select("SELECT thumbnail_path FROM materials WHERE thumbnail_path IS NOT NULL")
        return {row["thumbnail_path"] for row in rows if row["thumbnail_path"]}
