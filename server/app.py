"""
FastAPI backend for managing 3D models, their materials and uploaded files.

Run with:  uvicorn server.app:app  (or python main.py)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import structlog
from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.config import Settings, configure_logging
from app.errors import ResourceError
from app.file_store import UPLOADS_DIRNAME
from app.resource_service import ResourceService, build_service

logger = structlog.get_logger()

router = APIRouter()


# ---------------------- Request bodies ----------------------
class ModelCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    file_path: Optional[str] = Field(None, alias="filePath")
    thumbnail_path: Optional[str] = Field(None, alias="thumbnailPath")
    size: Optional[Union[int, float, str]] = None


class ModelUpdate(BaseModel):
    """Sparse patch: only the fields present in the JSON body are applied."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    file_path: Optional[str] = Field(None, alias="filePath")
    thumbnail_path: Optional[str] = Field(None, alias="thumbnailPath")
    size: Optional[Union[int, float, str]] = None


class MaterialCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: Optional[Union[int, str]] = Field(
        None, validation_alias=AliasChoices("model_id", "modelId")
    )
    name: Optional[str] = None
    data: Optional[Any] = None
    thumbnail_path: Optional[str] = Field(None, alias="thumbnailPath")


def _get_service(request: Request) -> ResourceService:
    return request.app.state.service


# ---------------------- Health ----------------------
@router.get("/health")
def health() -> Dict[str, str]:
    return ResourceService.health()


# ---------------------- Uploads ----------------------
@router.post("/api/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    service: ResourceService = Depends(_get_service),
) -> Dict[str, Any]:
    """Store a single file; the returned filePath is attached to a record by a later call."""
    content = await file.read() if file is not None else None
    return await run_in_threadpool(
        service.upload_file, file.filename if file is not None else None, content
    )


# ---------------------- Models ----------------------
@router.get("/api/models")
def list_models(service: ResourceService = Depends(_get_service)) -> List[Dict[str, Any]]:
    """Return all models, newest first."""
    return service.list_models()


@router.get("/api/models/{model_id}")
def get_model(model_id: str, service: ResourceService = Depends(_get_service)) -> Dict[str, Any]:
    return service.get_model(model_id)


@router.post("/api/models", status_code=201)
def create_model(
    payload: ModelCreate, service: ResourceService = Depends(_get_service)
) -> Dict[str, Any]:
    return service.create_model(
        payload.name,
        payload.file_path,
        thumbnail_path=payload.thumbnail_path,
        size=payload.size,
    )


@router.put("/api/models/{model_id}")
def update_model(
    model_id: str,
    payload: ModelUpdate,
    service: ResourceService = Depends(_get_service),
) -> Dict[str, Any]:
    # exclude_unset keeps "not supplied" apart from "supplied as null"
    return service.update_model(model_id, payload.model_dump(exclude_unset=True))


@router.delete("/api/models/{model_id}", status_code=204)
def delete_model(model_id: str, service: ResourceService = Depends(_get_service)) -> Response:
    service.delete_model(model_id)
    return Response(status_code=204)


@router.get("/api/models/{model_id}/materials")
def list_model_materials(
    model_id: str, service: ResourceService = Depends(_get_service)
) -> List[Dict[str, Any]]:
    return service.list_model_materials(model_id)


# ---------------------- Materials ----------------------
@router.get("/api/materials")
def list_materials(service: ResourceService = Depends(_get_service)) -> List[Dict[str, Any]]:
    return service.list_materials()


@router.post("/api/materials", status_code=201)
def create_material(
    payload: MaterialCreate, service: ResourceService = Depends(_get_service)
) -> Dict[str, Any]:
    return service.create_material(
        payload.model_id,
        payload.name,
        data=payload.data,
        thumbnail_path=payload.thumbnail_path,
    )


@router.delete("/api/materials/{material_id}", status_code=204)
def delete_material(material_id: str, service: ResourceService = Depends(_get_service)) -> Response:
    service.delete_material(material_id)
    return Response(status_code=204)


# ---------------------- Error mapping ----------------------
async def _resource_error_handler(request: Request, exc: ResourceError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        method=request.method,
        path=request.url.path,
        kind=exc.kind.value,
        error=exc.message,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.warning("request_invalid", method=request.method, path=request.url.path, error=problems)
    return JSONResponse(status_code=400, content={"error": f"Bad input: {problems}"})


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    # One store handle for the lifetime of the service
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    db, service = build_service(settings)
    service.file_store.uploads_dir.mkdir(parents=True, exist_ok=True)
    app.state.db = db
    app.state.service = service
    logger.info(
        "server_started",
        database=str(settings.database_path),
        uploads=str(service.file_store.uploads_dir),
        cascade_materials=settings.cascade_material_delete,
    )
    try:
        yield
    finally:
        db.close()
        logger.info("server_stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title="3D Model Library Backend", lifespan=_lifespan)
    app.state.settings = settings

    # The dashboard is served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "X-Requested-With"],
    )
    app.add_exception_handler(ResourceError, _resource_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)
    app.mount(
        f"/{UPLOADS_DIRNAME}",
        StaticFiles(directory=str(settings.uploads_root / UPLOADS_DIRNAME), check_dir=False),
        name=UPLOADS_DIRNAME,
    )
    return app


app = create_app()
