from fastapi import APIRouter, Depends, HTTPException, status

from restbench.api.deps import get_storage
from restbench.schemas.environment import Environment, EnvironmentCreate, EnvironmentUpdate
from restbench.services.storage import Storage

router = APIRouter()


@router.post("/", response_model=Environment, status_code=status.HTTP_201_CREATED)
def create_environment(payload: EnvironmentCreate, storage: Storage = Depends(get_storage)):
    return storage.create_environment(payload)


@router.get("/", response_model=list[Environment])
def list_environments(storage: Storage = Depends(get_storage)):
    return storage.list_environments()


@router.get("/{environment_id}", response_model=Environment)
def get_environment(environment_id: str, storage: Storage = Depends(get_storage)):
    environment = storage.get_environment(environment_id)
    if not environment:
        raise HTTPException(status_code=404, detail="Environment not found")
    return environment


@router.patch("/{environment_id}", response_model=Environment)
def update_environment(environment_id: str, payload: EnvironmentUpdate, storage: Storage = Depends(get_storage)):
    environment = storage.update_environment(environment_id, payload)
    if not environment:
        raise HTTPException(status_code=404, detail="Environment not found")
    return environment


@router.delete("/{environment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_environment(environment_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_environment(environment_id):
        raise HTTPException(status_code=404, detail="Environment not found")
