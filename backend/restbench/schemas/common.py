from pydantic import BaseModel

from restbench.models.request import BodyType


class KeyValue(BaseModel):
    key: str
    value: str = ""
    enabled: bool = True


class RequestBody(BaseModel):
    type: BodyType
    content: str = ""
