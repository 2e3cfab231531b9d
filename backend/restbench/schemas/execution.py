from datetime import datetime
from typing import Any

from pydantic import BaseModel

from restbench.schemas.collection import Collection, Folder
from restbench.schemas.common import KeyValue
from restbench.schemas.environment import Environment
from restbench.schemas.request import HttpRequest


class ExecutionResultCreate(BaseModel):
    request_id: str
    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: str = ""
    time: float = 0
    size: int = 0


class ExecutionResult(BaseModel):
    id: str
    request_id: str
    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: Any = None
    time: float = 0
    size: int = 0
    timestamp: datetime

    model_config = {"from_attributes": True}


class ScriptResult(BaseModel):
    updated_environment: Environment | None = None
    logs: list[str] = []
    error: str | None = None


class ExecuteRequest(BaseModel):
    environment_id: str | None = None
    # Inline records for clients that keep their data in browser storage
    request: HttpRequest | None = None
    folder: Folder | None = None
    collection: Collection | None = None
    environment: Environment | None = None


class ResolvedRequest(BaseModel):
    url: str
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: str = ""


class ExecuteResponse(BaseModel):
    result: ExecutionResult
    resolved_request: ResolvedRequest
    script: ScriptResult | None = None


class SubstitutionPreview(BaseModel):
    text: str
    environment_id: str | None = None
    environment: Environment | None = None


class SubstitutionResult(BaseModel):
    text: str
