"""Shared fixtures: a throwaway database and uploads directory per test."""

from __future__ import annotations

from pathlib import Path

import pytest

from app.database import Database
from app.file_store import FileStore
from app.resource_service import ResourceService


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "library.db").open()
    yield database
    database.close()


@pytest.fixture
def file_store(tmp_path):
    store = FileStore(tmp_path / "store")
    store.uploads_dir.mkdir(parents=True)
    return store


@pytest.fixture
def service(db, file_store):
    return ResourceService(db, file_store)


@pytest.fixture
def make_upload(file_store):
    """Write a file into the uploads dir and return its reference."""

    def _make(name: str, content: bytes = b"data") -> str:
        path: Path = file_store.uploads_dir / name
        path.write_bytes(content)
        return f"/uploads/{name}"

    return _make
