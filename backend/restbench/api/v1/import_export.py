from fastapi import APIRouter, Depends, HTTPException, status

from restbench.api.deps import get_services, get_storage
from restbench.core.errors import ImportFormatError
from restbench.schemas.imports import (
    CurlImport,
    CurlImportResult,
    ImportResult,
    OpenApiImport,
    PostmanImport,
)
from restbench.services import importer
from restbench.services.container import AppServices
from restbench.services.openapi_parser import parse_openapi
from restbench.services.postman_parser import parse_collection, parse_environment
from restbench.services.storage import Storage

router = APIRouter()


@router.post("/curl", response_model=CurlImportResult)
def import_curl(payload: CurlImport, storage: Storage = Depends(get_storage)):
    if payload.folder_id and not storage.get_folder(payload.folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    try:
        return importer.import_curl(storage, payload.command, payload.folder_id, payload.name)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/openapi", response_model=ImportResult, status_code=status.HTTP_201_CREATED)
async def import_openapi(payload: OpenApiImport, services: AppServices = Depends(get_services)):
    if not payload.url and not payload.spec:
        raise HTTPException(status_code=400, detail="Either OpenAPI URL or spec data is required")
    if not services.storage.get_workspace(payload.workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    try:
        parsed = await parse_openapi(
            payload.url,
            payload.spec,
            timeout=services.settings.OPENAPI_FETCH_TIMEOUT,
        )
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return importer.import_openapi(services.storage, parsed, payload.workspace_id)


@router.post("/postman", response_model=ImportResult, status_code=status.HTTP_201_CREATED)
def import_postman(payload: PostmanImport, storage: Storage = Depends(get_storage)):
    if payload.collection is None and payload.environment is None:
        raise HTTPException(status_code=400, detail="Either Postman collection or environment data is required")
    if payload.workspace_id and not storage.get_workspace(payload.workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    try:
        collection = parse_collection(payload.collection) if payload.collection is not None else None
        environment = parse_environment(payload.environment) if payload.environment is not None else None
        return importer.import_postman(storage, collection, environment, payload.workspace_id)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
