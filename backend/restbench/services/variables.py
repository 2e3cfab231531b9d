"""
{{variable}} substitution and scope-aware variable resolution.

A request sits under Folder -> Collection -> Workspace. When the active
environment holds several variables with the same key, the one bound to the
request's collection wins over the one bound to its workspace, which wins
over a global one. Disabled variables never take part.
"""
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from restbench.models.environment import VariableScope
from restbench.schemas.environment import Environment, EnvironmentVariable

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def substitute(text: str | None, lookup: Callable[[str], str | None]) -> str | None:
    """Replace every ``{{name}}`` in ``text`` with ``lookup(name)``.

    Names are trimmed before the lookup. Tokens the lookup cannot resolve are
    left untouched, and substituted values are never scanned again.
    """
    if not text:
        return text

    def replacer(match: re.Match) -> str:
        value = lookup(match.group(1).strip())
        return match.group(0) if value is None else value

    return VARIABLE_PATTERN.sub(replacer, text)


@dataclass(frozen=True)
class ResolutionScope:
    collection_id: str
    workspace_id: str


def lookup_variable(
    variables: Iterable[EnvironmentVariable],
    key: str,
    scope: ResolutionScope,
) -> str | None:
    candidates = [v for v in variables if v.key == key and v.enabled]

    for var in candidates:
        if var.scope == VariableScope.COLLECTION and var.scope_id == scope.collection_id:
            return var.value
    for var in candidates:
        if var.scope == VariableScope.WORKSPACE and var.scope_id == scope.workspace_id:
            return var.value
    for var in candidates:
        if var.scope == VariableScope.GLOBAL:
            return var.value
    return None


def substitute_in_scope(text: str | None, scope: ResolutionScope, environment: Environment) -> str | None:
    return substitute(text, lambda name: lookup_variable(environment.variables, name, scope))


class VariableResolver:
    """Resolves variables for a stored request.

    Only reads from storage: the ownership chain is walked once per call and
    a broken link resolves to nothing rather than raising.
    """

    def __init__(self, storage):
        self.storage = storage

    def scope_for(self, request_id: str) -> ResolutionScope | None:
        request = self.storage.get_request(request_id)
        if request is None:
            logger.debug("Request %s not found, nothing to resolve", request_id)
            return None
        folder = self.storage.get_folder(request.folder_id)
        if folder is None:
            logger.debug("Folder %s of request %s not found", request.folder_id, request_id)
            return None
        collection = self.storage.get_collection(folder.collection_id)
        if collection is None:
            logger.debug("Collection %s of folder %s not found", folder.collection_id, folder.id)
            return None
        return ResolutionScope(collection_id=collection.id, workspace_id=collection.workspace_id)

    def resolve(self, key: str, request_id: str, environment: Environment | None = None) -> str | None:
        if environment is None:
            return None
        scope = self.scope_for(request_id)
        if scope is None:
            return None
        return lookup_variable(environment.variables, key, scope)

    def substitute(self, text: str | None, request_id: str, environment: Environment | None = None) -> str | None:
        if not text or environment is None:
            return text
        scope = self.scope_for(request_id)
        if scope is None:
            return text
        return substitute_in_scope(text, scope, environment)
