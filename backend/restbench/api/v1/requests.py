from fastapi import APIRouter, Depends, HTTPException, Query, status

from restbench.api.deps import get_services, get_storage
from restbench.core.errors import NotFoundError
from restbench.schemas.execution import (
    ExecuteRequest,
    ExecuteResponse,
    ExecutionResult,
    SubstitutionPreview,
    SubstitutionResult,
)
from restbench.schemas.request import HttpRequest, RequestCreate, RequestUpdate
from restbench.services.container import AppServices
from restbench.services.execution import execute_request
from restbench.services.storage import Storage

router = APIRouter()


@router.post("/", response_model=HttpRequest, status_code=status.HTTP_201_CREATED)
def create_request(payload: RequestCreate, storage: Storage = Depends(get_storage)):
    if not storage.get_folder(payload.folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    return storage.create_request(payload)


@router.get("/", response_model=list[HttpRequest])
def list_requests(folder_id: str | None = None, storage: Storage = Depends(get_storage)):
    return storage.list_requests(folder_id)


@router.get("/{request_id}", response_model=HttpRequest)
def get_request(request_id: str, storage: Storage = Depends(get_storage)):
    request = storage.get_request(request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    return request


@router.patch("/{request_id}", response_model=HttpRequest)
def update_request(request_id: str, payload: RequestUpdate, storage: Storage = Depends(get_storage)):
    if payload.folder_id and not storage.get_folder(payload.folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    request = storage.update_request(request_id, payload)
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    return request


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_request(request_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_request(request_id):
        raise HTTPException(status_code=404, detail="Request not found")


@router.get("/{request_id}/history", response_model=list[ExecutionResult])
def request_history(
    request_id: str,
    limit: int = Query(50, ge=1, le=500),
    storage: Storage = Depends(get_storage),
):
    return storage.list_results(request_id, limit)


@router.post("/{request_id}/execute", response_model=ExecuteResponse)
async def execute(request_id: str, payload: ExecuteRequest, services: AppServices = Depends(get_services)):
    try:
        return await execute_request(services, request_id, payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{request_id}/resolve", response_model=SubstitutionResult)
def resolve_variables(request_id: str, payload: SubstitutionPreview, services: AppServices = Depends(get_services)):
    """Preview ``{{variable}}`` substitution as it would apply to this request."""
    environment = payload.environment
    if payload.environment_id:
        environment = services.storage.get_environment(payload.environment_id)
        if not environment:
            raise HTTPException(status_code=404, detail="Environment not found")
    return SubstitutionResult(text=services.resolver.substitute(payload.text, request_id, environment))
