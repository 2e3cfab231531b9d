import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from restbench import models
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
from restbench.services.storage import Storage

logger = logging.getLogger(__name__)


class SqlStorage(Storage):
    """Storage on SQLAlchemy ORM models; one session per operation.

    Deletes rely on the ORM relationship cascades, so removing a workspace
    takes its collections, folders, requests and execution results with it.
    """

    def __init__(self, session_factory: sessionmaker, engine: Engine | None = None):
        self._session_factory = session_factory
        self._engine = engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    # ── Generic helpers ──

    def _get(self, db: Session, model, record_id: str):
        return db.query(model).filter(model.id == record_id).first()

    def _create(self, model, schema, data: dict):
        with self._session_factory() as db:
            row = model(**data)
            db.add(row)
            db.commit()
            db.refresh(row)
            return schema.model_validate(row)

    def _update(self, model, schema, record_id: str, payload):
        with self._session_factory() as db:
            row = self._get(db, model, record_id)
            if row is None:
                return None
            for field, value in payload.model_dump(exclude_unset=True).items():
                setattr(row, field, value)
            db.commit()
            db.refresh(row)
            return schema.model_validate(row)

    def _delete(self, model, record_id: str) -> bool:
        with self._session_factory() as db:
            row = self._get(db, model, record_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def _fetch(self, model, schema, record_id: str):
        with self._session_factory() as db:
            row = self._get(db, model, record_id)
            return schema.model_validate(row) if row is not None else None

    def _list(self, model, schema, *criteria, order_by=None):
        with self._session_factory() as db:
            query = db.query(model)
            for criterion in criteria:
                query = query.filter(criterion)
            if order_by is not None:
                query = query.order_by(order_by)
            return [schema.model_validate(row) for row in query.all()]

    # ── Workspaces ──

    def list_workspaces(self) -> list[Workspace]:
        return self._list(models.Workspace, Workspace, order_by=models.Workspace.created_at)

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        return self._fetch(models.Workspace, Workspace, workspace_id)

    def create_workspace(self, payload: WorkspaceCreate) -> Workspace:
        return self._create(models.Workspace, Workspace, payload.model_dump())

    def update_workspace(self, workspace_id: str, payload: WorkspaceUpdate) -> Workspace | None:
        return self._update(models.Workspace, Workspace, workspace_id, payload)

    def delete_workspace(self, workspace_id: str) -> bool:
        return self._delete(models.Workspace, workspace_id)

    # ── Collections ──

    def list_collections(self, workspace_id: str | None = None) -> list[Collection]:
        criteria = [models.Collection.workspace_id == workspace_id] if workspace_id else []
        return self._list(models.Collection, Collection, *criteria, order_by=models.Collection.created_at)

    def get_collection(self, collection_id: str) -> Collection | None:
        return self._fetch(models.Collection, Collection, collection_id)

    def create_collection(self, payload: CollectionCreate) -> Collection:
        return self._create(models.Collection, Collection, payload.model_dump())

    def update_collection(self, collection_id: str, payload: CollectionUpdate) -> Collection | None:
        return self._update(models.Collection, Collection, collection_id, payload)

    def delete_collection(self, collection_id: str) -> bool:
        return self._delete(models.Collection, collection_id)

    # ── Folders ──

    def list_folders(self, collection_id: str | None = None) -> list[Folder]:
        criteria = [models.Folder.collection_id == collection_id] if collection_id else []
        return self._list(models.Folder, Folder, *criteria)

    def get_folder(self, folder_id: str) -> Folder | None:
        return self._fetch(models.Folder, Folder, folder_id)

    def create_folder(self, payload: FolderCreate) -> Folder:
        return self._create(models.Folder, Folder, payload.model_dump())

    def update_folder(self, folder_id: str, payload: FolderUpdate) -> Folder | None:
        return self._update(models.Folder, Folder, folder_id, payload)

    def delete_folder(self, folder_id: str) -> bool:
        return self._delete(models.Folder, folder_id)

    # ── Requests ──

    def list_requests(self, folder_id: str | None = None) -> list[HttpRequest]:
        criteria = [models.Request.folder_id == folder_id] if folder_id else []
        return self._list(models.Request, HttpRequest, *criteria, order_by=models.Request.created_at)

    def get_request(self, request_id: str) -> HttpRequest | None:
        return self._fetch(models.Request, HttpRequest, request_id)

    def create_request(self, payload: RequestCreate) -> HttpRequest:
        return self._create(models.Request, HttpRequest, payload.model_dump())

    def update_request(self, request_id: str, payload: RequestUpdate) -> HttpRequest | None:
        return self._update(models.Request, HttpRequest, request_id, payload)

    def delete_request(self, request_id: str) -> bool:
        return self._delete(models.Request, request_id)

    # ── Environments ──

    def list_environments(self) -> list[Environment]:
        return self._list(models.Environment, Environment, order_by=models.Environment.created_at)

    def get_environment(self, environment_id: str) -> Environment | None:
        return self._fetch(models.Environment, Environment, environment_id)

    def create_environment(self, payload: EnvironmentCreate) -> Environment:
        return self._create(models.Environment, Environment, payload.model_dump())

    def update_environment(self, environment_id: str, payload: EnvironmentUpdate) -> Environment | None:
        return self._update(models.Environment, Environment, environment_id, payload)

    def delete_environment(self, environment_id: str) -> bool:
        return self._delete(models.Environment, environment_id)

    # ── Execution results ──

    def save_result(self, payload: ExecutionResultCreate) -> ExecutionResult:
        return self._create(models.ExecutionRecord, ExecutionResult, payload.model_dump())

    def list_results(self, request_id: str, limit: int = 50) -> list[ExecutionResult]:
        with self._session_factory() as db:
            rows = (
                db.query(models.ExecutionRecord)
                .filter(models.ExecutionRecord.request_id == request_id)
                .order_by(models.ExecutionRecord.timestamp.desc())
                .limit(limit)
                .all()
            )
            return [ExecutionResult.model_validate(row) for row in rows]
