"""
ResourceService - the entry point for every model / material operation.

It sequences the record and file side effects:
- deletes clean up referenced files first (best-effort), then drop the record
- uploads only store bytes; attaching them to a record is a separate call

Usage (orphan sweep):
    python -m app.resource_service sweep          # report only
    python -m app.resource_service sweep --apply  # delete unreferenced uploads
"""

from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog

from app.config import Settings, configure_logging
from app.database import Database
from app.errors import ValidationFailure
from app.file_store import FileStore
from app.material_repository import MaterialRepository
from app.model_repository import ModelRepository

logger = structlog.get_logger()


class ResourceService:
    """Orchestrates repositories and file storage."""

    def __init__(self, db: Database, file_store: FileStore, cascade_materials: bool = False):
        self.models = ModelRepository(db)
        self.materials = MaterialRepository(db)
        self.file_store = file_store
        # When on, deleting a model also deletes its materials (and their thumbnails)
        self.cascade_materials = cascade_materials

    # ---------------------- Models ----------------------
    def list_models(self) -> List[Dict[str, Any]]:
        return self.models.list()

    def get_model(self, model_id: Any) -> Dict[str, Any]:
        return self.models.get(model_id)

    def create_model(
        self,
        name: Any,
        file_path: Any,
        thumbnail_path: Optional[str] = None,
        size: Any = None,
    ) -> Dict[str, Any]:
        return self.models.create(name, file_path, thumbnail_path=thumbnail_path, size=size)

    def update_model(self, model_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self.models.update(model_id, fields)

    def delete_model(self, model_id: Any) -> None:
        """
        Delete a model and its files.

        The record is fetched first; if it is missing we fail with NotFound
        without touching storage. File removal never blocks the record delete.
        """
        model = self.models.get(model_id)

        if self.cascade_materials:
            for material in self.materials.list_by_model(model["id"]):
                self._delete_material_record(material)

        self.file_store.remove(model["filePath"])
        self.file_store.remove(model["thumbnailPath"])
        self.models.delete(model["id"])

    # ---------------------- Materials ----------------------
    def list_materials(self) -> List[Dict[str, Any]]:
        return self.materials.list()

    def list_model_materials(self, model_id: Any) -> List[Dict[str, Any]]:
        return self.materials.list_by_model(model_id)

    def create_material(
        self,
        model_id: Any,
        name: Any,
        data: Optional[Dict[str, Any]] = None,
        thumbnail_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.materials.create(model_id, name, data=data, thumbnail_path=thumbnail_path)

    def delete_material(self, material_id: Any) -> None:
        material = self.materials.get(material_id)
        self._delete_material_record(material)

    def _delete_material_record(self, material: Dict[str, Any]) -> None:
        self.file_store.remove(material["thumbnailPath"])
        self.materials.delete(material["id"])

    # ---------------------- Files ----------------------
    def upload_file(self, filename: Optional[str], content: Optional[bytes]) -> Dict[str, Any]:
        """Store an uploaded payload; no record is created here."""
        if content is None:
            raise ValidationFailure("No file uploaded.")
        return self.file_store.save_upload(filename, content)

    def find_orphan_files(self, min_age_seconds: float = 0) -> List[str]:
        """
        Upload references that no model or material points at.

        Files modified less than ``min_age_seconds`` ago are skipped: an upload
        is stored before the record that points at it is created.
        """
        referenced = self.models.referenced_paths() | self.materials.referenced_paths()
        # Records may hold the reference with or without the leading slash
        normalized = {"/" + ref.lstrip("/") for ref in referenced}
        orphans = [ref for ref in self.file_store.list_references() if ref not in normalized]
        if min_age_seconds > 0:
            orphans = [ref for ref in orphans if self.file_store.age_seconds(ref) >= min_age_seconds]
        return orphans

    def sweep_orphan_files(self, dry_run: bool = True, min_age_seconds: float = 0) -> List[str]:
        orphans = self.find_orphan_files(min_age_seconds)
        if not dry_run:
            for reference in orphans:
                self.file_store.remove(reference)
        logger.info(
            "orphan_sweep", orphans=len(orphans), dry_run=dry_run, min_age_seconds=min_age_seconds
        )
        return orphans

    # ---------------------- Misc ----------------------
    @staticmethod
    def health() -> Dict[str, str]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        }


def build_service(settings: Settings) -> Tuple[Database, ResourceService]:
    """Open the store and wire a ResourceService; the caller closes the Database."""
    db = Database(settings.database_path).open()
    service = ResourceService(
        db,
        FileStore(settings.uploads_root),
        cascade_materials=settings.cascade_material_delete,
    )
    return db, service


def _cli_sweep(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Model library maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sweep = sub.add_parser("sweep", help="Find (and optionally delete) unreferenced uploads")
    sweep.add_argument("--apply", action="store_true", help="Delete the orphan files")
    sweep.add_argument(
        "--older-than",
        type=float,
        default=3600,
        metavar="SECONDS",
        help="Only consider files last modified at least this long ago (default: 3600)",
    )
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    db, service = build_service(settings)
    try:
        orphans = service.sweep_orphan_files(dry_run=not args.apply, min_age_seconds=args.older_than)
    finally:
        db.close()

    print(json.dumps({"orphans": orphans, "deleted": bool(args.apply)}, indent=2))


if __name__ == "__main__":
    _cli_sweep()
