"""
This backend client is used to talk to the FastAPI backend (server/app.py).
Every resource endpoint has a matching method here.
"""

from __future__ import annotations

import os
from typing import Optional, Dict, Any, List

import httpx


class BackendAPIClient:
    """Simple blocking client for the model library backend."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        base = api_url or os.getenv("BACKEND_API_URL", "http://127.0.0.1:3001")
        self.base_url = base.rstrip("/")
        self._client = httpx.Client(timeout=60.0, transport=transport)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        resp = self._client.request(method, f"{self.base_url}{path}", **kwargs)
        resp.raise_for_status()
        return resp

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health").json()

    # ---------------------- Models ----------------------
    def list_models(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/models").json()

    def get_model(self, model_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/models/{model_id}").json()

    def create_model(
        self,
        name: str,
        file_path: str,
        thumbnail_path: Optional[str] = None,
        size: Optional[Any] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name, "filePath": file_path}
        if thumbnail_path is not None:
            body["thumbnailPath"] = thumbnail_path
        if size is not None:
            body["size"] = size
        return self._request("POST", "/api/models", json=body).json()

    def update_model(self, model_id: int, **fields: Any) -> Dict[str, Any]:
        """
        Send a sparse update. Only the keyword arguments given are sent, so
        ``update_model(1, thumbnail_path=None)`` clears the thumbnail while
        ``update_model(1, name="x")`` leaves it alone.
        """
        aliases = {"file_path": "filePath", "thumbnail_path": "thumbnailPath"}
        body = {aliases.get(key, key): value for key, value in fields.items()}
        return self._request("PUT", f"/api/models/{model_id}", json=body).json()

    def delete_model(self, model_id: int) -> None:
        self._request("DELETE", f"/api/models/{model_id}")

    # ---------------------- Materials ----------------------
    def list_materials(self, model_id: Optional[int] = None) -> List[Dict[str, Any]]:
        if model_id is None:
            return self._request("GET", "/api/materials").json()
        return self._request("GET", f"/api/models/{model_id}/materials").json()

    def create_material(
        self,
        model_id: int,
        name: str,
        data: Optional[Dict[str, Any]] = None,
        thumbnail_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model_id": model_id, "name": name}
        if data is not None:
            body["data"] = data
        if thumbnail_path is not None:
            body["thumbnailPath"] = thumbnail_path
        return self._request("POST", "/api/materials", json=body).json()

    def delete_material(self, material_id: str) -> None:
        self._request("DELETE", f"/api/materials/{material_id}")

    # ---------------------- Files ----------------------
    def upload_file(self, file_bytes: bytes, filename: str) -> Dict[str, Any]:
        """
        Upload a raw file. The response holds the filePath to pass to
        create_model / create_material afterwards.
        """
        files = {
            "file": (filename, file_bytes, "application/octet-stream"),
        }
        return self._request("POST", "/api/upload", files=files).json()

    def download_file(self, reference: str) -> bytes:
        return self._request("GET", "/" + reference.lstrip("/")).content

    def close(self) -> None:
        if self._client:
            self._client.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            pass
