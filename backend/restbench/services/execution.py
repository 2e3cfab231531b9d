"""
Request execution flow.

Load the request with its folder, collection and environment, resolve
``{{variables}}`` in URL/headers/params/body, send it, record the result and
run the post-response script. Records missing from storage may be supplied
inline by clients that keep their data in the browser.
"""
import asyncio
import logging

from restbench.core.errors import NotFoundError
from restbench.schemas.common import KeyValue
from restbench.schemas.environment import Environment, EnvironmentUpdate
from restbench.schemas.execution import (
    ExecuteRequest,
    ExecuteResponse,
    ExecutionResultCreate,
    ResolvedRequest,
)
from restbench.services.container import AppServices
from restbench.services.script_runner import run_post_response_script
from restbench.services.variables import ResolutionScope, substitute_in_scope

logger = logging.getLogger(__name__)


def _resolve_entries(entries: list[KeyValue], resolve) -> list[KeyValue]:
    return [entry.model_copy(update={"value": resolve(entry.value)}) for entry in entries]


async def execute_request(services: AppServices, request_id: str, payload: ExecuteRequest) -> ExecuteResponse:
    storage = services.storage

    request = storage.get_request(request_id)
    stored = request is not None
    if request is None:
        request = payload.request
    if request is None:
        raise NotFoundError("Request not found")

    folder = storage.get_folder(request.folder_id) or payload.folder
    collection = (storage.get_collection(folder.collection_id) if folder else None) or payload.collection

    environment: Environment | None = None
    if payload.environment_id:
        environment = storage.get_environment(payload.environment_id)
    if environment is None:
        environment = payload.environment

    # ── 1. Variable resolution ──
    scope = services.resolver.scope_for(request.id) if stored else None
    if scope is None and collection is not None:
        scope = ResolutionScope(collection_id=collection.id, workspace_id=collection.workspace_id)

    def resolve(text: str | None) -> str | None:
        if environment is None or scope is None:
            return text
        return substitute_in_scope(text, scope, environment)

    env_headers = environment.headers if environment else []
    headers = _resolve_entries([*env_headers, *request.headers], resolve)
    params = _resolve_entries(request.params, resolve)
    url = resolve(request.url)
    body = resolve(request.body.content) if request.body and request.body.content else ""

    # ── 2. HTTP call ──
    response = await services.http_executor.execute(
        request.method,
        url,
        headers=headers,
        params=params,
        body=body if request.body else None,
        body_type=request.body.type if request.body else None,
    )
    logger.info(
        "%s %s -> %s (%.0f ms)",
        request.method.value, url, response.status, response.time,
    )

    result = storage.save_result(ExecutionResultCreate(
        request_id=request.id,
        status=response.status,
        status_text=response.status_text,
        headers=response.headers,
        body=response.body,
        time=response.time,
        size=response.size,
    ))

    # ── 3. Post-response script ──
    script_result = None
    if request.script and request.script.strip():
        script_result = await asyncio.to_thread(
            run_post_response_script,
            request.script,
            result,
            environment,
            request.script_language,
            services.settings.SCRIPT_TIMEOUT,
            services.settings.SCRIPT_MAX_STEPS,
        )
        updated = script_result.updated_environment
        if updated is not None and payload.environment_id:
            saved = storage.update_environment(
                payload.environment_id, EnvironmentUpdate(variables=updated.variables)
            )
            if saved is None:
                logger.debug("Environment %s is not stored, script changes not persisted", payload.environment_id)

    return ExecuteResponse(
        result=result,
        resolved_request=ResolvedRequest(
            url=url,
            headers=[h for h in headers if h.enabled],
            params=[p for p in params if p.enabled],
            body=body,
        ),
        script=script_result,
    )
