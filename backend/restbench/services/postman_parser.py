"""
Postman Collection v2.1 / Environment parser.

Only the first folder level is kept: requests found deeper are lifted into
their depth-1 ancestor with the intermediate folder names prefixed to the
request name. Requests sitting directly under the collection go into a
"General" folder.
"""
import json
import logging
from typing import Any
from urllib.parse import urlencode

from restbench.core.errors import PostmanParseError
from restbench.models.environment import VariableScope
from restbench.models.request import BodyType, ScriptLanguage
from restbench.schemas.common import KeyValue, RequestBody
from restbench.schemas.environment import EnvironmentVariable
from restbench.schemas.imports import (
    ParsedPostmanCollection,
    ParsedPostmanEnvironment,
    ParsedPostmanFolder,
    ParsedPostmanRequest,
)

logger = logging.getLogger(__name__)

GENERAL_FOLDER = "General"
NAME_SEPARATOR = " / "


# ────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────

def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _description(info: dict) -> str:
    description = info.get("description")
    # v2.1 allows {"content": ..., "type": "text/markdown"}
    if isinstance(description, dict):
        description = description.get("content")
    return _text(description) or "Imported from Postman"


def _key_values(entries: Any) -> list[KeyValue]:
    result: list[KeyValue] = []
    if not isinstance(entries, list):
        return result
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("key"):
            continue
        result.append(KeyValue(
            key=_text(entry["key"]),
            value=_text(entry.get("value")),
            enabled=not entry.get("disabled", False),
        ))
    return result


def _build_url(url_data: Any) -> tuple[str, list[KeyValue]]:
    if isinstance(url_data, str):
        return url_data, []
    if not isinstance(url_data, dict):
        return "", []

    params = _key_values(url_data.get("query"))

    raw = url_data.get("raw")
    if raw:
        return _text(raw), params

    host = url_data.get("host")
    if isinstance(host, list):
        host = ".".join(_text(h) for h in host)
    host = _text(host)
    if not host:
        return "", params

    path = url_data.get("path")
    if isinstance(path, list):
        path = "/" + "/".join(_text(p) for p in path)
    elif isinstance(path, str) and path:
        path = path if path.startswith("/") else "/" + path
    else:
        path = ""

    protocol = "http" if "localhost" in host or "127.0.0.1" in host else "https"
    return f"{protocol}://{host}{path}", params


def _build_body(body_data: Any) -> RequestBody | None:
    if not isinstance(body_data, dict) or not body_data.get("mode"):
        return None

    mode = body_data["mode"]

    if mode == "raw":
        raw = _text(body_data.get("raw"))
        language = ((body_data.get("options") or {}).get("raw") or {}).get("language")
        body_type = BodyType.RAW
        if language == "json":
            body_type = BodyType.JSON
        elif raw:
            try:
                json.loads(raw)
                body_type = BodyType.JSON
            except ValueError:
                body_type = BodyType.RAW
        return RequestBody(type=body_type, content=raw)

    if mode in ("formdata", "urlencoded"):
        entries = [
            entry for entry in body_data.get(mode) or []
            if isinstance(entry, dict) and entry.get("type", "text") == "text"
        ]
        fields = [(kv.key, kv.value) for kv in _key_values(entries) if kv.enabled]
        return RequestBody(type=BodyType.FORM, content=urlencode(fields))

    return None


def _test_script(item: dict) -> str | None:
    for event in item.get("event") or []:
        if not isinstance(event, dict) or event.get("listen") != "test":
            continue
        exec_lines = (event.get("script") or {}).get("exec") or []
        if isinstance(exec_lines, str):
            exec_lines = [exec_lines]
        script = "\n".join(exec_lines).strip()
        if script:
            return script
    return None


def _parse_request(item: dict, name: str) -> ParsedPostmanRequest:
    request = item["request"]
    if isinstance(request, str):
        return ParsedPostmanRequest(name=name, method="GET", url=request)

    url, params = _build_url(request.get("url"))
    script = _test_script(item)

    return ParsedPostmanRequest(
        name=name,
        method=_text(request.get("method") or "GET").upper(),
        url=url,
        headers=_key_values(request.get("header")),
        params=params,
        body=_build_body(request.get("body")),
        script=script,
        script_language=ScriptLanguage.JAVASCRIPT if script else None,
    )


def _collect_requests(items: list, prefix: str = "") -> list[ParsedPostmanRequest]:
    """Walk a folder's items depth-first, naming nested requests by their path."""
    requests: list[ParsedPostmanRequest] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name")) or "Untitled"
        if isinstance(item.get("item"), list):
            requests.extend(_collect_requests(item["item"], f"{prefix}{name}{NAME_SEPARATOR}"))
        elif item.get("request"):
            requests.append(_parse_request(item, prefix + name))
    return requests


def _collection_variables(data: dict) -> list[EnvironmentVariable]:
    variables: list[EnvironmentVariable] = []
    for entry in data.get("variable") or []:
        if not isinstance(entry, dict) or not entry.get("key"):
            continue
        variables.append(EnvironmentVariable(
            key=_text(entry["key"]),
            value=_text(entry.get("value")),
            enabled=not entry.get("disabled", False),
            scope=VariableScope.COLLECTION,
        ))
    return variables


# ────────────────────────────────────────────────────────────
# Public API
# ────────────────────────────────────────────────────────────

def parse_collection(data: Any) -> ParsedPostmanCollection:
    """Parse a Postman v2.1 collection export.

    Raises ``PostmanParseError`` when ``info`` or ``item`` is missing.
    """
    if not isinstance(data, dict) or not isinstance(data.get("info"), dict) or not isinstance(data.get("item"), list):
        logger.warning("Rejected Postman collection: missing 'info' or 'item'")
        raise PostmanParseError("Failed to parse Postman collection: Invalid Postman collection format")

    info = data["info"]
    folders: list[ParsedPostmanFolder] = []
    general: ParsedPostmanFolder | None = None

    for item in data["item"]:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name")) or "Untitled"
        if isinstance(item.get("item"), list):
            folders.append(ParsedPostmanFolder(name=name, requests=_collect_requests(item["item"])))
        elif item.get("request"):
            if general is None:
                general = ParsedPostmanFolder(name=GENERAL_FOLDER)
                folders.append(general)
            general.requests.append(_parse_request(item, name))

    collection = ParsedPostmanCollection(
        name=_text(info.get("name")) or "Imported Postman Collection",
        description=_description(info),
        folders=folders,
        variables=_collection_variables(data),
    )
    logger.info(
        "Parsed Postman collection '%s': %d folders, %d requests",
        collection.name,
        len(folders),
        sum(len(f.requests) for f in folders),
    )
    return collection


def parse_environment(data: Any) -> ParsedPostmanEnvironment:
    """Parse a Postman environment export into global-scope variables."""
    if not isinstance(data, dict) or not data.get("name") or not isinstance(data.get("values"), list):
        logger.warning("Rejected Postman environment: missing 'name' or 'values'")
        raise PostmanParseError("Failed to parse Postman environment: Invalid Postman environment format")

    variables = [
        EnvironmentVariable(
            key=_text(entry.get("key")),
            value=_text(entry.get("value")),
            enabled=entry.get("enabled") is not False,
            scope=VariableScope.GLOBAL,
        )
        for entry in data["values"]
        if isinstance(entry, dict) and entry.get("key")
    ]

    logger.info("Parsed Postman environment '%s': %d variables", data["name"], len(variables))
    return ParsedPostmanEnvironment(name=_text(data["name"]), variables=variables)
