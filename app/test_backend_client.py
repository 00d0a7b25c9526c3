"""
Pytests for BackendAPIClient, using httpx.MockTransport instead of a live server.
"""

import json

import httpx
import pytest

from app.backend_client import BackendAPIClient


@pytest.fixture
def recorded():
    return []


@pytest.fixture
def client(recorded):
    def handler(request: httpx.Request) -> httpx.Response:
        recorded.append(request)
        path = request.url.path
        if request.method == "DELETE":
            if path.endswith("/1"):
                return httpx.Response(204)
            return httpx.Response(404, json={"error": "Model not found"})
        if path == "/api/upload":
            return httpx.Response(200, json={"filePath": "/uploads/1-chair.obj", "size": 3})
        if request.method in ("POST", "PUT"):
            return httpx.Response(201, json=json.loads(request.content))
        return httpx.Response(200, json=[])

    api = BackendAPIClient(
        api_url="http://backend.test/", transport=httpx.MockTransport(handler)
    )
    yield api
    api.close()


def test_create_model_sends_camel_case_body(client, recorded):
    client.create_model("Chair", "/uploads/1.obj", thumbnail_path="/uploads/1.png")

    request = recorded[-1]
    assert request.method == "POST"
    assert str(request.url) == "http://backend.test/api/models"
    assert "Authorization" not in request.headers
    assert json.loads(request.content) == {
        "name": "Chair",
        "filePath": "/uploads/1.obj",
        "thumbnailPath": "/uploads/1.png",
    }


def test_update_model_only_sends_given_fields(client, recorded):
    client.update_model(3, file_path="/uploads/2.glb", thumbnail_path=None)

    request = recorded[-1]
    assert request.method == "PUT"
    assert request.url.path == "/api/models/3"
    assert json.loads(request.content) == {"filePath": "/uploads/2.glb", "thumbnailPath": None}


def test_list_materials_paths(client, recorded):
    client.list_materials()
    client.list_materials(model_id=4)

    assert [r.url.path for r in recorded] == ["/api/materials", "/api/models/4/materials"]


def test_create_material_body(client, recorded):
    client.create_material(1, "Wood", data={"roughness": 0.5})
    assert json.loads(recorded[-1].content) == {
        "model_id": 1,
        "name": "Wood",
        "data": {"roughness": 0.5},
    }


def test_upload_file_is_multipart(client, recorded):
    result = client.upload_file(b"abc", "chair.obj")

    assert result == {"filePath": "/uploads/1-chair.obj", "size": 3}
    request = recorded[-1]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="chair.obj"' in request.content


def test_delete_raises_on_http_errors(client):
    client.delete_model(1)
    with pytest.raises(httpx.HTTPStatusError):
        client.delete_model(2)


def test_inspect_script_groups_materials(monkeypatch, capsys):
    import inspect_backend_models

    class _StubClient:
        def __init__(self, api_url=None):
            pass

        def list_models(self):
            return [{"id": 1, "name": "Chair"}]

        def list_materials(self):
            return [
                {"id": "a", "modelId": 1, "name": "Wood"},
                {"id": "b", "modelId": 9, "name": "Left behind"},
            ]

        def close(self):
            pass

    monkeypatch.setattr(inspect_backend_models, "BackendAPIClient", _StubClient)
    inspect_backend_models.main()

    out = capsys.readouterr().out
    assert "Total models in backend DB: 1" in out
    assert "material: Wood (a)" in out
    assert "Materials without a model: 1" in out
