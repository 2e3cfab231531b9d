from restbench.models.workspace import Workspace
from restbench.models.collection import Collection, Folder
from restbench.models.request import Request
from restbench.models.environment import Environment
from restbench.models.history import ExecutionRecord

__all__ = [
    "Workspace",
    "Collection",
    "Folder",
    "Request",
    "Environment",
    "ExecutionRecord",
]
