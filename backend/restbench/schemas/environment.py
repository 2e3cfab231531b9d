from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from restbench.models.environment import VariableScope
from restbench.schemas.common import KeyValue


class EnvironmentVariable(BaseModel):
    key: str
    value: str = ""
    enabled: bool = True
    scope: VariableScope = VariableScope.GLOBAL
    # Required for workspace/collection scope; parsers leave it unset until the
    # importer knows which collection the variables belong to.
    scope_id: str | None = None


class EnvironmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    variables: list[EnvironmentVariable] = []
    headers: list[KeyValue] = []

    @model_validator(mode="after")
    def _require_scope_ids(self) -> "EnvironmentCreate":
        _check_scope_ids(self.variables)
        return self


class EnvironmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    variables: list[EnvironmentVariable] | None = None
    headers: list[KeyValue] | None = None

    @model_validator(mode="after")
    def _require_scope_ids(self) -> "EnvironmentUpdate":
        _check_scope_ids(self.variables or [])
        return self


class Environment(BaseModel):
    id: str
    name: str
    variables: list[EnvironmentVariable] = []
    headers: list[KeyValue] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


def _check_scope_ids(variables: list[EnvironmentVariable]) -> None:
    for var in variables:
        if var.scope != VariableScope.GLOBAL and not var.scope_id:
            raise ValueError(f"Variable '{var.key}' has scope '{var.scope.value}' but no scope_id")
