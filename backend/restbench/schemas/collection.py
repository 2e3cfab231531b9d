from datetime import datetime

from pydantic import BaseModel, Field

from restbench.schemas.request import HttpRequest


class CollectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    workspace_id: str


class CollectionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    workspace_id: str | None = None


class Collection(BaseModel):
    id: str
    name: str
    description: str | None = None
    workspace_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    collection_id: str
    parent_id: str | None = None


class FolderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    parent_id: str | None = None


class Folder(BaseModel):
    id: str
    name: str
    collection_id: str
    parent_id: str | None = None

    model_config = {"from_attributes": True}


class FolderDetail(Folder):
    requests: list[HttpRequest] = []


class CollectionDetail(Collection):
    folders: list[FolderDetail] = []
