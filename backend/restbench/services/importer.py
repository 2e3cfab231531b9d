"""
Turns parser output into stored records.

Parsers only describe what an artifact contains; this module decides where
it lands: one collection per import, folders grouped the way the source
groups them, and the inferred variables bound to the new collection.
"""
import json
import logging

from restbench.core.errors import ImportFormatError
from restbench.models.environment import VariableScope
from restbench.models.request import BodyType, HttpMethod, ScriptLanguage
from restbench.schemas.collection import CollectionCreate, FolderCreate
from restbench.schemas.common import KeyValue, RequestBody
from restbench.schemas.environment import EnvironmentCreate, EnvironmentVariable
from restbench.schemas.imports import (
    CurlImportResult,
    ImportResult,
    ParsedOpenAPI,
    ParsedPostmanCollection,
    ParsedPostmanEnvironment,
)
from restbench.schemas.request import RequestCreate
from restbench.services.curl_parser import parse_curl
from restbench.services.storage import Storage

logger = logging.getLogger(__name__)

_NAME_LIMIT = 200


def _name(text: str, fallback: str) -> str:
    return (text or fallback).strip()[:_NAME_LIMIT] or fallback


def _coerce_method(method: str) -> HttpMethod:
    try:
        return HttpMethod(method.upper())
    except ValueError:
        logger.warning("Unsupported HTTP method %r stored as GET", method)
        return HttpMethod.GET


def _bind_to_collection(variables: list[EnvironmentVariable], collection_id: str) -> list[EnvironmentVariable]:
    return [
        v.model_copy(update={"scope_id": collection_id}) if v.scope == VariableScope.COLLECTION else v
        for v in variables
    ]


# ── cURL ──

def _curl_body(body: str | None, headers) -> RequestBody | None:
    if body is None:
        return None
    try:
        json.loads(body)
        return RequestBody(type=BodyType.JSON, content=body)
    except ValueError:
        pass
    for header in headers:
        if header.key.lower() == "content-type" and "x-www-form-urlencoded" in header.value.lower():
            return RequestBody(type=BodyType.FORM, content=body)
    return RequestBody(type=BodyType.RAW, content=body)


def import_curl(
    storage: Storage,
    command: str,
    folder_id: str | None = None,
    name: str | None = None,
) -> CurlImportResult:
    """Parse ``command`` and, when ``folder_id`` is given, store it as a request."""
    parsed = parse_curl(command)
    if parsed is None:
        raise ImportFormatError("Could not parse cURL command")

    if folder_id is None:
        return CurlImportResult(parsed=parsed)

    request = storage.create_request(RequestCreate(
        name=_name(name, f"{parsed.method} {parsed.url}"),
        method=_coerce_method(parsed.method),
        url=parsed.url,
        folder_id=folder_id,
        headers=parsed.headers,
        params=parsed.params,
        body=_curl_body(parsed.body, parsed.headers),
    ))
    logger.info("Imported cURL command as request %s", request.id)
    return CurlImportResult(parsed=parsed, request=request)


# ── OpenAPI ──

def _openapi_folder_name(path: str) -> str:
    segments = [s for s in path.split("/") if s]
    if not segments:
        return "General"
    return segments[0][:1].upper() + segments[0][1:]


def import_openapi(storage: Storage, parsed: ParsedOpenAPI, workspace_id: str) -> ImportResult:
    collection = storage.create_collection(CollectionCreate(
        name=_name(parsed.title, "Imported API"),
        description=parsed.description,
        workspace_id=workspace_id,
    ))
    result = ImportResult(collection_id=collection.id)

    if parsed.environment_variables or parsed.environment_headers:
        environment = storage.create_environment(EnvironmentCreate(
            name=_name(f"{parsed.title} Environment", "Imported Environment"),
            variables=_bind_to_collection(parsed.environment_variables, collection.id),
            headers=parsed.environment_headers,
        ))
        result.environment_ids.append(environment.id)

    folder_ids: dict[str, str] = {}
    for request in parsed.requests:
        folder_name = _openapi_folder_name(request.path)
        if folder_name not in folder_ids:
            folder = storage.create_folder(FolderCreate(name=folder_name, collection_id=collection.id))
            folder_ids[folder_name] = folder.id
            result.folders += 1

        storage.create_request(RequestCreate(
            name=_name(request.name, f"{request.method} {request.path}"),
            method=_coerce_method(request.method),
            url=f"{{{{baseUrl}}}}{request.path}",
            folder_id=folder_ids[folder_name],
            headers=request.headers,
            params=request.params,
            body=request.body,
        ))
        result.requests += 1

    logger.info(
        "Imported OpenAPI '%s' into collection %s (%d folders, %d requests)",
        parsed.title, collection.id, result.folders, result.requests,
    )
    return result


# ── Postman ──

def _postman_url(url: str, params: list[KeyValue]) -> str:
    # Params carry the query already
    if params:
        return url.split("?", 1)[0]
    return url


def _store_postman_tree(
    storage: Storage, collection: ParsedPostmanCollection, collection_id: str, result: ImportResult
) -> None:
    for parsed_folder in collection.folders:
        folder = storage.create_folder(FolderCreate(
            name=_name(parsed_folder.name, "Folder"),
            collection_id=collection_id,
        ))
        result.folders += 1
        for request in parsed_folder.requests:
            storage.create_request(RequestCreate(
                name=_name(request.name, "Untitled"),
                method=_coerce_method(request.method),
                url=_postman_url(request.url, request.params),
                folder_id=folder.id,
                headers=request.headers,
                params=request.params,
                body=request.body,
                script=request.script,
                script_language=request.script_language or ScriptLanguage.PYTHON,
            ))
            result.requests += 1


def import_postman(
    storage: Storage,
    collection: ParsedPostmanCollection | None,
    environment: ParsedPostmanEnvironment | None,
    workspace_id: str | None,
) -> ImportResult:
    result = ImportResult()

    if collection is not None:
        if not workspace_id:
            raise ImportFormatError("workspace_id is required to import a Postman collection")

        stored = storage.create_collection(CollectionCreate(
            name=_name(collection.name, "Imported Postman Collection"),
            description=collection.description,
            workspace_id=workspace_id,
        ))
        try:
            _store_postman_tree(storage, collection, stored.id, result)
        except Exception:
            logger.warning("Postman import failed, removing partial collection %s", stored.id)
            storage.delete_collection(stored.id)
            raise
        result.collection_id = stored.id

        if collection.variables:
            variables_env = storage.create_environment(EnvironmentCreate(
                name=_name(f"{collection.name} Variables", "Collection Variables"),
                variables=_bind_to_collection(collection.variables, stored.id),
            ))
            result.environment_ids.append(variables_env.id)

    if environment is not None:
        stored_env = storage.create_environment(EnvironmentCreate(
            name=_name(environment.name, "Imported Environment"),
            variables=environment.variables,
        ))
        result.environment_ids.append(stored_env.id)

    logger.info(
        "Imported Postman data: collection=%s, %d folders, %d requests, %d environments",
        result.collection_id, result.folders, result.requests, len(result.environment_ids),
    )
    return result
