from fastapi import APIRouter

from restbench.api.v1 import (
    workspaces, collections, folders, requests, environments, import_export,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
api_router.include_router(collections.router, prefix="/collections", tags=["Collections"])
api_router.include_router(folders.router, prefix="/folders", tags=["Folders"])
api_router.include_router(requests.router, prefix="/requests", tags=["Requests"])
api_router.include_router(environments.router, prefix="/environments", tags=["Environments"])
api_router.include_router(import_export.router, prefix="/import-export", tags=["Import/Export"])
