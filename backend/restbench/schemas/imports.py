"""Transient shapes produced by the import parsers.

None of these are stored directly; ``restbench.services.importer`` turns them
into workspaces, collections, folders, requests and environments.
"""
from typing import Any

from pydantic import BaseModel

from restbench.models.request import ScriptLanguage
from restbench.schemas.common import KeyValue, RequestBody
from restbench.schemas.environment import EnvironmentVariable
from restbench.schemas.request import HttpRequest


class ParsedCurlCommand(BaseModel):
    # Kept as a plain string: unknown verbs are accepted with a warning
    method: str = "GET"
    url: str
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: str | None = None


class ParsedPostmanRequest(BaseModel):
    name: str
    method: str = "GET"
    url: str = ""
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: RequestBody | None = None
    script: str | None = None
    script_language: ScriptLanguage | None = None


class ParsedPostmanFolder(BaseModel):
    name: str
    requests: list[ParsedPostmanRequest] = []


class ParsedPostmanCollection(BaseModel):
    name: str
    description: str = ""
    folders: list[ParsedPostmanFolder] = []
    variables: list[EnvironmentVariable] = []


class ParsedPostmanEnvironment(BaseModel):
    name: str
    variables: list[EnvironmentVariable] = []


class ParsedOpenAPIRequest(BaseModel):
    name: str
    method: str
    path: str
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: RequestBody | None = None


class ParsedOpenAPI(BaseModel):
    title: str
    description: str
    base_url: str = ""
    requests: list[ParsedOpenAPIRequest] = []
    environment_variables: list[EnvironmentVariable] = []
    environment_headers: list[KeyValue] = []


# ── Import endpoint payloads ──

class CurlImport(BaseModel):
    command: str
    folder_id: str | None = None
    name: str | None = None


class OpenApiImport(BaseModel):
    url: str | None = None
    spec: dict[str, Any] | str | None = None
    workspace_id: str


class PostmanImport(BaseModel):
    collection: dict[str, Any] | None = None
    environment: dict[str, Any] | None = None
    workspace_id: str | None = None


class ImportResult(BaseModel):
    collection_id: str | None = None
    environment_ids: list[str] = []
    folders: int = 0
    requests: int = 0


class CurlImportResult(BaseModel):
    parsed: ParsedCurlCommand
    request: HttpRequest | None = None
