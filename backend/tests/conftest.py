"""Shared fixtures for the RestBench test suite."""

import httpx
import pytest
from fastapi.testclient import TestClient

from restbench.config import Settings
from restbench.database import create_db_engine, create_session_factory, create_tables
from restbench.main import create_app
from restbench.schemas.collection import CollectionCreate, FolderCreate
from restbench.schemas.workspace import WorkspaceCreate
from restbench.services.container import build_services
from restbench.services.sql_storage import SqlStorage
from restbench.services.storage import MemStorage


def echo_handler(request: httpx.Request) -> httpx.Response:
    """Mock upstream: echoes the request back as JSON, with a token to capture."""
    if request.url.host == "unreachable.test":
        raise httpx.ConnectError("Connection refused", request=request)
    return httpx.Response(
        200,
        json={
            "method": request.method,
            "url": str(request.url),
            "headers": dict(request.headers),
            "body": request.content.decode("utf-8"),
            "token": "abc123",
        },
    )


@pytest.fixture
def mem_storage():
    return MemStorage()


@pytest.fixture
def sql_storage():
    engine = create_db_engine("sqlite://")
    create_tables(engine)
    storage = SqlStorage(create_session_factory(engine), engine)
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sql"])
def storage(request, mem_storage, sql_storage):
    """Runs a test once against each storage backend."""
    return mem_storage if request.param == "memory" else sql_storage


@pytest.fixture
def tree(storage):
    """Workspace -> Collection -> Folder, returned as a dict of records."""
    workspace = storage.create_workspace(WorkspaceCreate(name="Team"))
    collection = storage.create_collection(CollectionCreate(name="Users API", workspace_id=workspace.id))
    folder = storage.create_folder(FolderCreate(name="Users", collection_id=collection.id))
    return {"storage": storage, "workspace": workspace, "collection": collection, "folder": folder}


@pytest.fixture
def settings():
    return Settings(STORAGE_BACKEND="memory", SCRIPT_TIMEOUT=2.0, SCRIPT_MAX_STEPS=10_000)


@pytest.fixture
def services(settings):
    return build_services(settings, storage=MemStorage(), transport=httpx.MockTransport(echo_handler))


@pytest.fixture
def client(settings, services):
    with TestClient(create_app(settings, services)) as c:
        yield c


@pytest.fixture
def folder_id(client):
    """Creates Workspace -> Collection -> Folder through the API and returns the folder id."""
    ws = client.post("/api/v1/workspaces/", json={"name": "Team"}).json()
    col = client.post("/api/v1/collections/", json={"name": "Users API", "workspace_id": ws["id"]}).json()
    folder = client.post("/api/v1/folders/", json={"name": "Users", "collection_id": col["id"]}).json()
    return folder["id"]
