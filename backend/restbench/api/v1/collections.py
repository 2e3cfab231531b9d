from fastapi import APIRouter, Depends, HTTPException, status

from restbench.api.deps import get_storage
from restbench.schemas.collection import (
    Collection,
    CollectionCreate,
    CollectionDetail,
    CollectionUpdate,
    FolderDetail,
)
from restbench.services.storage import Storage

router = APIRouter()


@router.post("/", response_model=Collection, status_code=status.HTTP_201_CREATED)
def create_collection(payload: CollectionCreate, storage: Storage = Depends(get_storage)):
    if not storage.get_workspace(payload.workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    return storage.create_collection(payload)


@router.get("/", response_model=list[Collection])
def list_collections(workspace_id: str | None = None, storage: Storage = Depends(get_storage)):
    return storage.list_collections(workspace_id)


@router.get("/{collection_id}", response_model=CollectionDetail)
def get_collection(collection_id: str, storage: Storage = Depends(get_storage)):
    collection = storage.get_collection(collection_id)
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    folders = [
        FolderDetail(**folder.model_dump(), requests=storage.list_requests(folder.id))
        for folder in storage.list_folders(collection_id)
    ]
    return CollectionDetail(**collection.model_dump(), folders=folders)


@router.patch("/{collection_id}", response_model=Collection)
def update_collection(collection_id: str, payload: CollectionUpdate, storage: Storage = Depends(get_storage)):
    if payload.workspace_id and not storage.get_workspace(payload.workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    collection = storage.update_collection(collection_id, payload)
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    return collection


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_collection(collection_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_collection(collection_id):
        raise HTTPException(status_code=404, detail="Collection not found")
