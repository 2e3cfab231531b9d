from fastapi import APIRouter, Depends, HTTPException, status

from restbench.api.deps import get_storage
from restbench.schemas.collection import Folder, FolderCreate, FolderUpdate
from restbench.schemas.request import HttpRequest
from restbench.services.storage import Storage

router = APIRouter()


def _check_parent(storage: Storage, folder_id: str | None, parent_id: str, collection_id: str) -> None:
    """A parent must live in the same collection and must not be the folder itself or below it."""
    seen: set[str] = set()
    current = parent_id
    while current and current not in seen:
        if current == folder_id:
            raise HTTPException(status_code=400, detail="A folder cannot be nested inside itself")
        parent = storage.get_folder(current)
        if not parent:
            raise HTTPException(status_code=404, detail="Parent folder not found")
        if parent.collection_id != collection_id:
            raise HTTPException(status_code=400, detail="Parent folder belongs to another collection")
        seen.add(current)
        current = parent.parent_id


@router.post("/", response_model=Folder, status_code=status.HTTP_201_CREATED)
def create_folder(payload: FolderCreate, storage: Storage = Depends(get_storage)):
    if not storage.get_collection(payload.collection_id):
        raise HTTPException(status_code=404, detail="Collection not found")
    if payload.parent_id:
        _check_parent(storage, None, payload.parent_id, payload.collection_id)
    return storage.create_folder(payload)


@router.get("/", response_model=list[Folder])
def list_folders(collection_id: str | None = None, storage: Storage = Depends(get_storage)):
    return storage.list_folders(collection_id)


@router.get("/{folder_id}", response_model=Folder)
def get_folder(folder_id: str, storage: Storage = Depends(get_storage)):
    folder = storage.get_folder(folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


@router.get("/{folder_id}/requests", response_model=list[HttpRequest])
def list_folder_requests(folder_id: str, storage: Storage = Depends(get_storage)):
    if not storage.get_folder(folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    return storage.list_requests(folder_id)


@router.patch("/{folder_id}", response_model=Folder)
def update_folder(folder_id: str, payload: FolderUpdate, storage: Storage = Depends(get_storage)):
    folder = storage.get_folder(folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    if payload.parent_id:
        _check_parent(storage, folder_id, payload.parent_id, folder.collection_id)
    return storage.update_folder(folder_id, payload)


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_folder(folder_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_folder(folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
