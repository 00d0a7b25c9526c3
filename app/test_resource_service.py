"""
Pytests for ResourceService: delete sequencing, cascade policy, uploads and the
orphan sweep.
"""

import json
import os
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from app.errors import NotFound, ReferentialFailure, ValidationFailure
from app.file_store import FileStore
from app.resource_service import ResourceService, _cli_sweep


def test_delete_model_removes_files_and_record(service, file_store, make_upload):
    model_ref = make_upload("1.obj")
    thumb_ref = make_upload("1.png")
    model = service.create_model("Chair", model_ref, thumbnail_path=thumb_ref)

    service.delete_model(model["id"])

    assert not file_store.resolve(model_ref).exists()
    assert not file_store.resolve(thumb_ref).exists()
    with pytest.raises(NotFound):
        service.get_model(model["id"])


def test_delete_model_with_missing_files_still_succeeds(service):
    model = service.create_model("Chair", "/uploads/gone.obj", thumbnail_path="/uploads/gone.png")

    service.delete_model(model["id"])

    assert service.list_models() == []


def test_delete_model_when_file_removal_fails(service, file_store, make_upload, monkeypatch):
    ref = make_upload("stuck.obj")
    model = service.create_model("Chair", ref)

    def _deny(self, *args, **kwargs):
        raise PermissionError("busy")

    monkeypatch.setattr(Path, "unlink", _deny)
    service.delete_model(model["id"])
    monkeypatch.undo()

    # record gone even though the file could not be removed
    with pytest.raises(NotFound):
        service.get_model(model["id"])
    assert file_store.resolve(ref).exists()


def test_delete_missing_model_does_not_touch_storage(db):
    store = MagicMock(spec=FileStore)
    service = ResourceService(db, store)

    with pytest.raises(NotFound):
        service.delete_model(77)
    store.remove.assert_not_called()


def test_delete_model_rejects_malformed_id(db):
    store = MagicMock(spec=FileStore)
    service = ResourceService(db, store)

    with pytest.raises(ValidationFailure):
        service.delete_model("seven")
    store.remove.assert_not_called()


def test_delete_model_cleans_files_before_record(db):
    calls = []
    store = MagicMock(spec=FileStore)
    store.remove.side_effect = lambda ref: calls.append(("remove", ref))
    service = ResourceService(db, store)
    model = service.create_model("Chair", "/uploads/1.obj", thumbnail_path="/uploads/1.png")

    original_delete = service.models.delete

    def _tracking_delete(model_id):
        calls.append(("delete", model_id))
        original_delete(model_id)

    service.models.delete = _tracking_delete
    service.delete_model(model["id"])

    assert calls == [
        ("remove", "/uploads/1.obj"),
        ("remove", "/uploads/1.png"),
        ("delete", model["id"]),
    ]


def test_delete_material_removes_thumbnail_only(service, file_store, make_upload):
    model_ref = make_upload("1.obj")
    thumb_ref = make_upload("wood.png")
    model = service.create_model("Chair", model_ref)
    material = service.create_material(model["id"], "Wood", thumbnail_path=thumb_ref)

    service.delete_material(material["id"])

    assert not file_store.resolve(thumb_ref).exists()
    assert file_store.resolve(model_ref).exists()
    assert service.list_model_materials(model["id"]) == []


def test_delete_missing_material(db):
    store = MagicMock(spec=FileStore)
    service = ResourceService(db, store)

    with pytest.raises(NotFound):
        service.delete_material("0b0e7f1c-missing")
    store.remove.assert_not_called()


def test_create_material_for_unknown_model(service):
    with pytest.raises(ReferentialFailure):
        service.create_material(3, "Wood")
    assert service.list_materials() == []


def test_end_to_end_without_cascade(service):
    model = service.create_model("Chair", "uploads/1.obj")
    assert model["id"] == 1
    assert model["fileType"] == "OBJ"
    assert model["thumbnailPath"] is None
    assert model["size"] is None

    material = service.create_material(1, "Wood")
    assert material["modelId"] == 1
    assert material["data"] == {}

    service.delete_model(1)
    with pytest.raises(NotFound):
        service.get_model(1)

    # materials are left behind when their model goes away
    assert service.list_model_materials(1) == [material]


def test_delete_model_with_cascade(db, file_store, make_upload):
    service = ResourceService(db, file_store, cascade_materials=True)
    model = service.create_model("Chair", make_upload("1.obj"))
    other = service.create_model("Table", make_upload("2.obj"))
    wood_thumb = make_upload("wood.png")
    service.create_material(model["id"], "Wood", thumbnail_path=wood_thumb)
    service.create_material(model["id"], "Fabric")
    keep = service.create_material(other["id"], "Metal")

    service.delete_model(model["id"])

    assert service.list_model_materials(model["id"]) == []
    assert service.list_materials() == [keep]
    assert not file_store.resolve(wood_thumb).exists()


def test_upload_then_attach(service, file_store):
    uploaded = service.upload_file("chair.glb", b"glTF")
    assert uploaded["size"] == 4
    assert service.list_models() == []

    model = service.create_model("Chair", uploaded["filePath"], size=uploaded["size"])
    assert model["fileType"] == "GLB"
    assert model["size"] == "4"

    service.delete_model(model["id"])
    assert not file_store.resolve(uploaded["filePath"]).exists()


def test_upload_without_payload(service):
    with pytest.raises(ValidationFailure, match="No file uploaded."):
        service.upload_file("chair.glb", None)


def test_orphan_sweep(service, file_store, make_upload):
    used = make_upload("used.obj")
    thumb = make_upload("used.png")
    mat_thumb = make_upload("mat.png")
    orphan = make_upload("orphan.obj")
    model = service.create_model("Chair", used, thumbnail_path=thumb.lstrip("/"))
    service.create_material(model["id"], "Wood", thumbnail_path=mat_thumb)

    assert service.find_orphan_files() == [orphan]

    assert service.sweep_orphan_files() == [orphan]
    assert file_store.resolve(orphan).exists()

    assert service.sweep_orphan_files(dry_run=False) == [orphan]
    assert not file_store.resolve(orphan).exists()
    assert file_store.resolve(used).exists()
    assert file_store.resolve(mat_thumb).exists()


def test_orphan_sweep_keeps_recent_uploads(service, file_store, make_upload):
    stale = make_upload("stale.obj")
    fresh = make_upload("fresh.obj")
    two_hours_ago = time.time() - 7200
    os.utime(file_store.resolve(stale), (two_hours_ago, two_hours_ago))

    assert service.find_orphan_files(min_age_seconds=3600) == [stale]

    assert service.sweep_orphan_files(dry_run=False, min_age_seconds=3600) == [stale]
    assert not file_store.resolve(stale).exists()
    assert file_store.resolve(fresh).exists()


def test_sweep_command_honours_older_than(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("UPLOADS_ROOT", str(tmp_path / "assets"))
    store = FileStore(tmp_path / "assets")
    store.uploads_dir.mkdir(parents=True)
    (store.uploads_dir / "new.obj").write_bytes(b"data")

    _cli_sweep(["sweep", "--apply"])
    assert json.loads(capsys.readouterr().out)["orphans"] == []
    assert (store.uploads_dir / "new.obj").exists()

    _cli_sweep(["sweep", "--apply", "--older-than", "0"])
    assert json.loads(capsys.readouterr().out)["orphans"] == ["/uploads/new.obj"]
    assert not (store.uploads_dir / "new.obj").exists()


def test_health():
    status = ResourceService.health()
    assert status["status"] == "healthy"
    assert status["timestamp"].endswith("+00:00")
