from pydantic import BaseModel, Field

from restbench.models.request import HttpMethod, ScriptLanguage
from restbench.schemas.common import KeyValue, RequestBody


class RequestCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    method: HttpMethod = HttpMethod.GET
    url: str
    folder_id: str
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: RequestBody | None = None
    script: str | None = None
    script_language: ScriptLanguage = ScriptLanguage.PYTHON


class RequestUpdate(BaseModel):
    name: str | None = None
    method: HttpMethod | None = None
    url: str | None = None
    folder_id: str | None = None
    headers: list[KeyValue] | None = None
    params: list[KeyValue] | None = None
    body: RequestBody | None = None
    script: str | None = None
    script_language: ScriptLanguage | None = None


class HttpRequest(BaseModel):
    id: str
    name: str
    method: HttpMethod
    url: str
    folder_id: str
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: RequestBody | None = None
    script: str | None = None
    script_language: ScriptLanguage = ScriptLanguage.PYTHON

    model_config = {"from_attributes": True}

    def enabled_headers(self) -> list[KeyValue]:
        return [h for h in self.headers if h.enabled]

    def enabled_params(self) -> list[KeyValue]:
        return [p for p in self.params if p.enabled]
