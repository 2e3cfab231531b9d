from fastapi import APIRouter, Depends, HTTPException, status

from restbench.api.deps import get_storage
from restbench.schemas.collection import Collection
from restbench.schemas.workspace import Workspace, WorkspaceCreate, WorkspaceUpdate
from restbench.services.storage import Storage

router = APIRouter()


@router.post("/", response_model=Workspace, status_code=status.HTTP_201_CREATED)
def create_workspace(payload: WorkspaceCreate, storage: Storage = Depends(get_storage)):
    return storage.create_workspace(payload)


@router.get("/", response_model=list[Workspace])
def list_workspaces(storage: Storage = Depends(get_storage)):
    return storage.list_workspaces()


@router.get("/{workspace_id}", response_model=Workspace)
def get_workspace(workspace_id: str, storage: Storage = Depends(get_storage)):
    workspace = storage.get_workspace(workspace_id)
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


@router.get("/{workspace_id}/collections", response_model=list[Collection])
def list_workspace_collections(workspace_id: str, storage: Storage = Depends(get_storage)):
    if not storage.get_workspace(workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    return storage.list_collections(workspace_id)


@router.patch("/{workspace_id}", response_model=Workspace)
def update_workspace(workspace_id: str, payload: WorkspaceUpdate, storage: Storage = Depends(get_storage)):
    workspace = storage.update_workspace(workspace_id, payload)
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workspace(workspace_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_workspace(workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
