"""
OpenAPI 3.x importer.

Produces request templates (paths are kept relative; the importer prefixes
them with ``{{baseUrl}}``) plus the collection variables and headers implied
by the document's security schemes. Only a missing or unreadable document is
an error; every optional section that is absent simply yields nothing.
"""
import json
import logging
from typing import Any

import httpx
import yaml

from restbench.core.errors import OpenAPIParseError
from restbench.models.environment import VariableScope
from restbench.models.request import BodyType
from restbench.schemas.common import KeyValue, RequestBody
from restbench.schemas.environment import EnvironmentVariable
from restbench.schemas.imports import ParsedOpenAPI, ParsedOpenAPIRequest

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch")
COMMON_PARAM_THRESHOLD = 3
MAX_SCHEMA_DEPTH = 10


# ────────────────────────────────────────────────────────────
# Loading
# ────────────────────────────────────────────────────────────

def load_document(raw: str | bytes) -> dict[str, Any]:
    """Parse JSON, falling back to YAML."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        document = json.loads(raw)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse as JSON or YAML: {e}") from e
    if not isinstance(document, dict):
        raise ValueError("Document is not a JSON or YAML object")
    return document


async def fetch_document(
    url: str,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        try:
            resp = await client.get(url)
        except httpx.TimeoutException as e:
            raise ValueError(f"Failed to fetch OpenAPI spec: timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise ValueError(f"Failed to fetch OpenAPI spec: {e}") from e
    if not resp.is_success:
        raise ValueError(f"Failed to fetch OpenAPI spec: {resp.reason_phrase}")
    return load_document(resp.content)


# ────────────────────────────────────────────────────────────
# Schema helpers
# ────────────────────────────────────────────────────────────

def _resolve_ref(document: dict, ref: str) -> dict:
    if not isinstance(ref, str) or not ref.startswith("#/"):
        return {}
    current: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(current, dict):
            return {}
        current = current.get(part, {})
    return current if isinstance(current, dict) else {}


def _deref(document: dict, node: Any, depth: int = 0) -> dict:
    while isinstance(node, dict) and "$ref" in node and depth < MAX_SCHEMA_DEPTH:
        node = _resolve_ref(document, node["$ref"])
        depth += 1
    return node if isinstance(node, dict) else {}


def generate_example(schema: Any, document: dict | None = None, depth: int = 0) -> Any:
    """Synthesize an example payload from a JSON Schema."""
    if depth > MAX_SCHEMA_DEPTH:
        return {}
    schema = _deref(document or {}, schema)
    if not schema:
        return {}

    if "example" in schema:
        return schema["example"]

    for key in ("oneOf", "anyOf"):
        options = schema.get(key)
        if isinstance(options, list) and options:
            return generate_example(options[0], document, depth + 1)

    all_of = schema.get("allOf")
    if isinstance(all_of, list) and all_of:
        merged: dict[str, Any] = {}
        for sub in all_of:
            part = generate_example(sub, document, depth + 1)
            if isinstance(part, dict):
                merged.update(part)
        return merged

    schema_type = schema.get("type")
    if schema_type == "object":
        properties = schema.get("properties") or {}
        return {
            name: generate_example(prop, document, depth + 1)
            for name, prop in properties.items()
        }
    if schema_type == "array":
        items = schema.get("items")
        return [generate_example(items, document, depth + 1)] if items else []
    if schema_type == "string":
        enum = schema.get("enum")
        return enum[0] if isinstance(enum, list) and enum else "string"
    if schema_type in ("number", "integer"):
        return 0
    if schema_type == "boolean":
        return False
    return {}


# ────────────────────────────────────────────────────────────
# Extraction
# ────────────────────────────────────────────────────────────

def _security_bindings(document: dict) -> tuple[list[EnvironmentVariable], list[KeyValue]]:
    variables: list[EnvironmentVariable] = []
    headers: list[KeyValue] = []

    def add_var(key: str) -> None:
        variables.append(EnvironmentVariable(key=key, value="", scope=VariableScope.COLLECTION))

    schemes = (document.get("components") or {}).get("securitySchemes") or {}
    for scheme in schemes.values():
        scheme = _deref(document, scheme)
        scheme_type = scheme.get("type")
        http_scheme = str(scheme.get("scheme", "")).lower()

        if scheme_type == "http" and http_scheme == "bearer":
            add_var("bearerToken")
            headers.append(KeyValue(key="Authorization", value="Bearer {{bearerToken}}"))
        elif scheme_type == "apiKey":
            var_name = scheme.get("name") or "apiKey"
            add_var(var_name)
            if scheme.get("in") == "header":
                headers.append(KeyValue(key=scheme.get("name") or "X-API-Key", value=f"{{{{{var_name}}}}}"))
        elif scheme_type == "http" and http_scheme == "basic":
            add_var("username")
            add_var("password")
        elif scheme_type == "oauth2":
            add_var("accessToken")
            headers.append(KeyValue(key="Authorization", value="Bearer {{accessToken}}"))

    return variables, headers


def _operation_parameters(document: dict, path_item: dict, operation: dict) -> list[dict]:
    """Path-level parameters overridden by operation-level ones with the same (in, name)."""
    merged: dict[tuple[str, str], dict] = {}
    for source in (path_item.get("parameters"), operation.get("parameters")):
        if not isinstance(source, list):
            continue
        for param in source:
            param = _deref(document, param)
            if param.get("name") and param.get("in"):
                merged[(param["in"], param["name"])] = param
    return list(merged.values())


def _request_body(document: dict, operation: dict) -> RequestBody | None:
    request_body = _deref(document, operation.get("requestBody"))
    media = (request_body.get("content") or {}).get("application/json")
    if not isinstance(media, dict):
        return None
    if "example" in media:
        example = media["example"]
    elif media.get("schema"):
        example = generate_example(media["schema"], document)
    else:
        return None
    return RequestBody(type=BodyType.JSON, content=json.dumps(example, indent=2, ensure_ascii=False))


def parse_document(document: dict[str, Any], source_url: str | None = None) -> ParsedOpenAPI:
    """Extract requests and environment bindings from an already-loaded document."""
    info = document.get("info") if isinstance(document.get("info"), dict) else {}
    servers = document.get("servers")
    base_url = ""
    if isinstance(servers, list) and servers and isinstance(servers[0], dict):
        base_url = str(servers[0].get("url") or "")

    variables, env_headers = _security_bindings(document)
    if base_url:
        variables.insert(0, EnvironmentVariable(key="baseUrl", value=base_url, scope=VariableScope.COLLECTION))

    param_usage: dict[str, int] = {}
    requests: list[ParsedOpenAPIRequest] = []

    paths = document.get("paths") if isinstance(document.get("paths"), dict) else {}
    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                continue

            params: list[KeyValue] = []
            headers: list[KeyValue] = []
            for param in _operation_parameters(document, path_item, operation):
                usage_key = f"{param['in']}:{param['name']}"
                param_usage[usage_key] = param_usage.get(usage_key, 0) + 1
                entry = KeyValue(key=param["name"], value="", enabled=bool(param.get("required", False)))
                if param["in"] == "query":
                    params.append(entry)
                elif param["in"] == "header":
                    headers.append(entry)

            requests.append(ParsedOpenAPIRequest(
                name=operation.get("summary") or operation.get("description") or f"{method.upper()} {path}",
                method=method.upper(),
                path=path,
                headers=headers,
                params=params,
                body=_request_body(document, operation),
            ))

    known = {v.key for v in variables}
    for usage_key, count in param_usage.items():
        name = usage_key.split(":", 1)[1]
        if count >= COMMON_PARAM_THRESHOLD and name not in known:
            variables.append(EnvironmentVariable(key=name, value="", scope=VariableScope.COLLECTION))
            known.add(name)

    if source_url:
        default_description = f"Imported from {source_url}"
    else:
        default_description = "Imported from OpenAPI specification"

    parsed = ParsedOpenAPI(
        title=info.get("title") or "Imported API",
        description=info.get("description") or default_description,
        base_url=base_url,
        requests=requests,
        environment_variables=variables,
        environment_headers=env_headers,
    )
    logger.info(
        "Parsed OpenAPI '%s': %d requests, %d variables",
        parsed.title,
        len(requests),
        len(variables),
    )
    return parsed


async def parse_openapi(
    url: str | None = None,
    spec: dict[str, Any] | str | None = None,
    *,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ParsedOpenAPI:
    """Parse an OpenAPI document given inline or fetched from ``url``.

    An inline ``spec`` wins over ``url``. Any failure is raised as
    ``OpenAPIParseError`` with a "Failed to parse OpenAPI spec: " prefix;
    a failed fetch is not retried.
    """
    try:
        if spec:
            document = load_document(spec) if isinstance(spec, str) else spec
        elif url:
            document = await fetch_document(url, timeout=timeout, transport=transport)
        else:
            raise ValueError("Either url or spec data must be provided")
        if not isinstance(document, dict):
            raise ValueError("Document is not a JSON or YAML object")
        return parse_document(document, source_url=url)
    except OpenAPIParseError:
        raise
    except Exception as e:
        logger.warning("OpenAPI import failed: %s", e)
        raise OpenAPIParseError(f"Failed to parse OpenAPI spec: {e}") from e
