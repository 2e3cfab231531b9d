"""
Storage collaborators.

``Storage`` is the contract the rest of the application programs against;
``MemStorage`` keeps everything in process and ``SqlStorage``
(``restbench.services.sql_storage``) persists through SQLAlchemy. Both
cascade deletes down the ownership chain
Workspace -> Collection -> Folder -> Request -> execution results.
"""
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from restbench.schemas.collection import (
    Collection,
    CollectionCreate,
    CollectionUpdate,
    Folder,
    FolderCreate,
    FolderUpdate,
)
from restbench.schemas.environment import Environment, EnvironmentCreate, EnvironmentUpdate
from restbench.schemas.execution import ExecutionResult, ExecutionResultCreate
from restbench.schemas.request import HttpRequest, RequestCreate, RequestUpdate
from restbench.schemas.workspace import Workspace, WorkspaceCreate, WorkspaceUpdate


class Storage(ABC):
    # ── Workspaces ──
    @abstractmethod
    def list_workspaces(self) -> list[Workspace]: ...

    @abstractmethod
    def get_workspace(self, workspace_id: str) -> Workspace | None: ...

    @abstractmethod
    def create_workspace(self, payload: WorkspaceCreate) -> Workspace: ...

    @abstractmethod
    def update_workspace(self, workspace_id: str, payload: WorkspaceUpdate) -> Workspace | None: ...

    @abstractmethod
    def delete_workspace(self, workspace_id: str) -> bool: ...

    # ── Collections ──
    @abstractmethod
    def list_collections(self, workspace_id: str | None = None) -> list[Collection]: ...

    @abstractmethod
    def get_collection(self, collection_id: str) -> Collection | None: ...

    @abstractmethod
    def create_collection(self, payload: CollectionCreate) -> Collection: ...

    @abstractmethod
    def update_collection(self, collection_id: str, payload: CollectionUpdate) -> Collection | None: ...

    @abstractmethod
    def delete_collection(self, collection_id: str) -> bool: ...

    # ── Folders ──
    @abstractmethod
    def list_folders(self, collection_id: str | None = None) -> list[Folder]: ...

    @abstractmethod
    def get_folder(self, folder_id: str) -> Folder | None: ...

    @abstractmethod
    def create_folder(self, payload: FolderCreate) -> Folder: ...

    @abstractmethod
    def update_folder(self, folder_id: str, payload: FolderUpdate) -> Folder | None: ...

    @abstractmethod
    def delete_folder(self, folder_id: str) -> bool: ...

    # ── Requests ──
    @abstractmethod
    def list_requests(self, folder_id: str | None = None) -> list[HttpRequest]: ...

    @abstractmethod
    def get_request(self, request_id: str) -> HttpRequest | None: ...

    @abstractmethod
    def create_request(self, payload: RequestCreate) -> HttpRequest: ...

    @abstractmethod
    def update_request(self, request_id: str, payload: RequestUpdate) -> HttpRequest | None: ...

    @abstractmethod
    def delete_request(self, request_id: str) -> bool: ...

    # ── Environments ──
    @abstractmethod
    def list_environments(self) -> list[Environment]: ...

    @abstractmethod
    def get_environment(self, environment_id: str) -> Environment | None: ...

    @abstractmethod
    def create_environment(self, payload: EnvironmentCreate) -> Environment: ...

    @abstractmethod
    def update_environment(self, environment_id: str, payload: EnvironmentUpdate) -> Environment | None: ...

    @abstractmethod
    def delete_environment(self, environment_id: str) -> bool: ...

    # ── Execution results ──
    @abstractmethod
    def save_result(self, payload: ExecutionResultCreate) -> ExecutionResult: ...

    @abstractmethod
    def list_results(self, request_id: str, limit: int = 50) -> list[ExecutionResult]: ...

    def close(self) -> None:
        """Release backend resources. Nothing to do by default."""


def _new_id() -> str:
    return str(uuid.uuid4())


class MemStorage(Storage):
    """Dict-backed storage. Records are copied on the way in and out."""

    def __init__(self):
        self._lock = threading.RLock()
        self._workspaces: dict[str, Workspace] = {}
        self._collections: dict[str, Collection] = {}
        self._folders: dict[str, Folder] = {}
        self._requests: dict[str, HttpRequest] = {}
        self._environments: dict[str, Environment] = {}
        self._results: dict[str, ExecutionResult] = {}

    @staticmethod
    def _patch(record, payload, timestamps: bool = True):
        changes = payload.model_dump(exclude_unset=True)
        if timestamps:
            changes["updated_at"] = datetime.utcnow()
        return type(record).model_validate({**record.model_dump(), **changes})

    # ── Workspaces ──

    def list_workspaces(self) -> list[Workspace]:
        with self._lock:
            return [w.model_copy(deep=True) for w in self._workspaces.values()]

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        with self._lock:
            workspace = self._workspaces.get(workspace_id)
            return workspace.model_copy(deep=True) if workspace else None

    def create_workspace(self, payload: WorkspaceCreate) -> Workspace:
        now = datetime.utcnow()
        workspace = Workspace(id=_new_id(), created_at=now, updated_at=now, **payload.model_dump())
        with self._lock:
            self._workspaces[workspace.id] = workspace
        return workspace.model_copy(deep=True)

    def update_workspace(self, workspace_id: str, payload: WorkspaceUpdate) -> Workspace | None:
        with self._lock:
            existing = self._workspaces.get(workspace_id)
            if existing is None:
                return None
            updated = self._patch(existing, payload)
            self._workspaces[workspace_id] = updated
            return updated.model_copy(deep=True)

    def delete_workspace(self, workspace_id: str) -> bool:
        with self._lock:
            if self._workspaces.pop(workspace_id, None) is None:
                return False
            for collection_id in [c.id for c in self._collections.values() if c.workspace_id == workspace_id]:
                self._drop_collection(collection_id)
            return True

    # ── Collections ──

    def list_collections(self, workspace_id: str | None = None) -> list[Collection]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._collections.values()
                if workspace_id is None or c.workspace_id == workspace_id
            ]

    def get_collection(self, collection_id: str) -> Collection | None:
        with self._lock:
            collection = self._collections.get(collection_id)
            return collection.model_copy(deep=True) if collection else None

    def create_collection(self, payload: CollectionCreate) -> Collection:
        now = datetime.utcnow()
        collection = Collection(id=_new_id(), created_at=now, updated_at=now, **payload.model_dump())
        with self._lock:
            self._collections[collection.id] = collection
        return collection.model_copy(deep=True)

    def update_collection(self, collection_id: str, payload: CollectionUpdate) -> Collection | None:
        with self._lock:
            existing = self._collections.get(collection_id)
            if existing is None:
                return None
            updated = self._patch(existing, payload)
            self._collections[collection_id] = updated
            return updated.model_copy(deep=True)

    def delete_collection(self, collection_id: str) -> bool:
        with self._lock:
            if collection_id not in self._collections:
                return False
            self._drop_collection(collection_id)
            return True

    def _drop_collection(self, collection_id: str) -> None:
        self._collections.pop(collection_id, None)
        for folder_id in [f.id for f in self._folders.values() if f.collection_id == collection_id]:
            self._drop_folder(folder_id)

    # ── Folders ──

    def list_folders(self, collection_id: str | None = None) -> list[Folder]:
        with self._lock:
            return [
                f.model_copy(deep=True)
                for f in self._folders.values()
                if collection_id is None or f.collection_id == collection_id
            ]

    def get_folder(self, folder_id: str) -> Folder | None:
        with self._lock:
            folder = self._folders.get(folder_id)
            return folder.model_copy(deep=True) if folder else None

    def create_folder(self, payload: FolderCreate) -> Folder:
        folder = Folder(id=_new_id(), **payload.model_dump())
        with self._lock:
            self._folders[folder.id] = folder
        return folder.model_copy(deep=True)

    def update_folder(self, folder_id: str, payload: FolderUpdate) -> Folder | None:
        with self._lock:
            existing = self._folders.get(folder_id)
            if existing is None:
                return None
            updated = self._patch(existing, payload, timestamps=False)
            self._folders[folder_id] = updated
            return updated.model_copy(deep=True)

    def delete_folder(self, folder_id: str) -> bool:
        with self._lock:
            if folder_id not in self._folders:
                return False
            self._drop_folder(folder_id)
            return True

    def _drop_folder(self, folder_id: str) -> None:
        # Children may already be gone when a whole collection is dropped
        if self._folders.pop(folder_id, None) is None:
            return
        for child_id in [f.id for f in self._folders.values() if f.parent_id == folder_id]:
            self._drop_folder(child_id)
        for request_id in [r.id for r in self._requests.values() if r.folder_id == folder_id]:
            self._drop_request(request_id)

    # ── Requests ──

    def list_requests(self, folder_id: str | None = None) -> list[HttpRequest]:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._requests.values()
                if folder_id is None or r.folder_id == folder_id
            ]

    def get_request(self, request_id: str) -> HttpRequest | None:
        with self._lock:
            request = self._requests.get(request_id)
            return request.model_copy(deep=True) if request else None

    def create_request(self, payload: RequestCreate) -> HttpRequest:
        request = HttpRequest.model_validate({"id": _new_id(), **payload.model_dump()})
        with self._lock:
            self._requests[request.id] = request
        return request.model_copy(deep=True)

    def update_request(self, request_id: str, payload: RequestUpdate) -> HttpRequest | None:
        with self._lock:
            existing = self._requests.get(request_id)
            if existing is None:
                return None
            updated = self._patch(existing, payload, timestamps=False)
            self._requests[request_id] = updated
            return updated.model_copy(deep=True)

    def delete_request(self, request_id: str) -> bool:
        with self._lock:
            if request_id not in self._requests:
                return False
            self._drop_request(request_id)
            return True

    def _drop_request(self, request_id: str) -> None:
        self._requests.pop(request_id, None)
        for result_id in [r.id for r in self._results.values() if r.request_id == request_id]:
            del self._results[result_id]

    # ── Environments ──

    def list_environments(self) -> list[Environment]:
        with self._lock:
            return [e.model_copy(deep=True) for e in self._environments.values()]

    def get_environment(self, environment_id: str) -> Environment | None:
        with self._lock:
            environment = self._environments.get(environment_id)
            return environment.model_copy(deep=True) if environment else None

    def create_environment(self, payload: EnvironmentCreate) -> Environment:
        now = datetime.utcnow()
        environment = Environment.model_validate(
            {"id": _new_id(), "created_at": now, "updated_at": now, **payload.model_dump()}
        )
        with self._lock:
            self._environments[environment.id] = environment
        return environment.model_copy(deep=True)

    def update_environment(self, environment_id: str, payload: EnvironmentUpdate) -> Environment | None:
        with self._lock:
            existing = self._environments.get(environment_id)
            if existing is None:
                return None
            updated = self._patch(existing, payload)
            self._environments[environment_id] = updated
            return updated.model_copy(deep=True)

    def delete_environment(self, environment_id: str) -> bool:
        with self._lock:
            return self._environments.pop(environment_id, None) is not None

    # ── Execution results ──

    def save_result(self, payload: ExecutionResultCreate) -> ExecutionResult:
        result = ExecutionResult(id=_new_id(), timestamp=datetime.utcnow(), **payload.model_dump())
        with self._lock:
            self._results[result.id] = result
        return result.model_copy(deep=True)

    def list_results(self, request_id: str, limit: int = 50) -> list[ExecutionResult]:
        with self._lock:
            results = [r for r in self._results.values() if r.request_id == request_id]
        # Newest first; insertion order breaks timestamp ties
        results = sorted(reversed(results), key=lambda r: r.timestamp, reverse=True)
        return [r.model_copy(deep=True) for r in results[:limit]]
