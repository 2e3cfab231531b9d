"""
Sandboxed post-response script execution.

Scripts see exactly two names, ``pm`` and ``console``, plus a handful of pure
builtins. Each script runs in its own process: the source is checked with
``ast`` before it is compiled, and runs under a trace hook that stops it once
the line budget or the wall-clock deadline is exhausted. A process that stays
busy past the deadline, inside a single long builtin call for instance, is
killed. Failures never propagate: they come back as
``ScriptResult.error`` with an ``ERROR:`` log line, alongside whatever the
script changed in the environment before it failed.
"""
import ast
import json
import logging
import multiprocessing
import sys
import time
from functools import lru_cache
from typing import Any

from restbench.core.errors import ScriptError, ScriptRejectedError, ScriptTimeoutError
from restbench.models.environment import VariableScope
from restbench.models.request import ScriptLanguage
from restbench.schemas.environment import Environment, EnvironmentVariable
from restbench.schemas.execution import ExecutionResult, ScriptResult
from restbench.services.js_script_runner import transform_js_script

logger = logging.getLogger(__name__)

SCRIPT_FILENAME = "<script>"
SCRIPT_TIMEOUT = 5.0
SCRIPT_MAX_STEPS = 100_000
# Seconds past the deadline before a busy script process is killed
WORKER_KILL_GRACE = 1.0


def _wrap_value(val: Any) -> Any:
    """Recursively wrap dicts/lists for attribute-style access."""
    if isinstance(val, dict) and not isinstance(val, _AttrDict):
        return _AttrDict(val)
    if isinstance(val, list) and not isinstance(val, _AttrList):
        return _AttrList(val)
    return val


class _AttrDict(dict):
    """Dict that supports attribute-style access. Returns None for missing keys.

    Keys win over dict methods, so ``data.items`` is the ``items`` key when
    the body has one.
    """

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_") and dict.__contains__(self, name):
            return _wrap_value(dict.__getitem__(self, name))
        return super().__getattribute__(name)

    def __getattr__(self, name: str) -> Any:
        try:
            return _wrap_value(self[name])
        except KeyError:
            return None

    def __getitem__(self, key: Any) -> Any:
        return _wrap_value(super().__getitem__(key))

    def get(self, key: Any, default: Any = None) -> Any:
        return _wrap_value(super().get(key, default))


class _AttrList(list):
    """List that wraps nested dicts/lists for attribute-style access."""

    def __getitem__(self, index: Any) -> Any:
        return _wrap_value(super().__getitem__(index))

    def __iter__(self):
        for item in super().__iter__():
            yield _wrap_value(item)


def _stringify(value: Any) -> str:
    """Render a script value the way a JavaScript String()/JSON call would."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


# ── Script-facing API ──

class _Console:
    def __init__(self, logs: list[str]):
        self._logs = logs

    def _write(self, prefix: str, args: tuple) -> None:
        self._logs.append(prefix + " ".join(_stringify(a) for a in args))

    def log(self, *args: Any) -> None:
        self._write("", args)

    def warn(self, *args: Any) -> None:
        self._write("WARN: ", args)

    def error(self, *args: Any) -> None:
        self._write("ERROR: ", args)


class _ResponseAccessor:
    """``pm.response``: status, headers and the body both parsed and raw."""

    def __init__(self, result: ExecutionResult):
        self.status = result.status
        self.code = result.status
        self.headers = _AttrDict(result.headers or {})

        raw = result.body
        if isinstance(raw, str):
            self._text = raw
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = raw
        else:
            self._text = "" if raw is None else json.dumps(raw, ensure_ascii=False)
            parsed = raw
        self.body = _wrap_value(parsed)

    def json(self) -> Any:
        return self.body

    def text(self) -> str:
        return self._text


class _EnvironmentAccessor:
    """``pm.environment``: flat, scope-agnostic access to the working copy."""

    def __init__(self, environment: Environment | None, logs: list[str]):
        self._environment = environment
        self._logs = logs

    def get(self, key: str) -> str | None:
        if self._environment is None:
            return None
        for var in self._environment.variables:
            if var.key == key and var.enabled:
                return var.value
        return None

    def set(self, key: str, value: Any) -> None:
        key = _stringify(key)
        if self._environment is None:
            self._logs.append(f'WARN: Cannot set environment variable "{key}" - no environment selected')
            return

        text = _stringify(value)
        for var in self._environment.variables:
            if var.key == key:
                var.value = text
                break
        else:
            self._environment.variables.append(
                EnvironmentVariable(key=key, value=text, enabled=True, scope=VariableScope.GLOBAL)
            )
        self._logs.append(f'Environment variable "{key}" = "{text}"')

    def unset(self, key: str) -> None:
        if self._environment is None:
            return
        key = _stringify(key)
        self._environment.variables = [v for v in self._environment.variables if v.key != key]
        self._logs.append(f'Environment variable "{key}" removed')


class _PostmanApi:
    def __init__(self, response: _ResponseAccessor, environment: _EnvironmentAccessor):
        self.response = response
        self.environment = environment


# ── Sandbox ──

_SAFE_BUILTINS = {
    "len": len, "str": str, "int": int, "float": float, "bool": bool,
    "list": list, "dict": dict,
    "abs": abs, "min": min, "max": max, "round": round, "sorted": sorted,
    "range": range, "enumerate": enumerate, "isinstance": isinstance,
    "True": True, "False": False, "None": None,
}

# Attributes that lead from a plain value back to frames, code or globals
_FORBIDDEN_ATTRIBUTES = frozenset({
    "format", "format_map",
    "gi_frame", "gi_code", "gi_yieldfrom",
    "cr_frame", "cr_code", "cr_await",
    "ag_frame", "ag_code", "ag_await",
    "f_back", "f_globals", "f_locals", "f_builtins", "f_code",
    "tb_frame", "tb_next",
})


class _SandboxChecker(ast.NodeVisitor):
    def _reject(self, node: ast.AST, what: str) -> None:
        raise ScriptRejectedError(f"{what} is not allowed in scripts (line {getattr(node, 'lineno', '?')})")

    def visit_Import(self, node: ast.Import) -> None:
        self._reject(node, "import")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject(node, "import")

    def visit_Global(self, node: ast.Global) -> None:
        self._reject(node, "global")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._reject(node, "nonlocal")

    def visit_Try(self, node: ast.Try) -> None:
        # Tracing is switched off once the budget fires; no handler may run after it
        self._reject(node, "try")

    visit_TryStar = visit_Try

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("_"):
            self._reject(node, f"name '{node.id}'")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr in _FORBIDDEN_ATTRIBUTES:
            self._reject(node, f"attribute '{node.attr}'")
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if node.name.startswith("_"):
            self._reject(node, f"name '{node.name}'")
        self.generic_visit(node)

    def visit_arg(self, node: ast.arg) -> None:
        if node.arg.startswith("_"):
            self._reject(node, f"name '{node.arg}'")


def _strip_js_comments(script: str) -> str:
    """Turn ``//`` line comments into Python comments."""
    processed = []
    for line in script.split("\n"):
        stripped = line.lstrip()
        if stripped.startswith("//"):
            indent = line[: len(line) - len(stripped)]
            processed.append(indent + "#" + stripped[2:])
        else:
            processed.append(line)
    return "\n".join(processed)


def compile_script(source: str):
    """Validate and compile script source, raising ``ScriptRejectedError`` on forbidden constructs."""
    tree = ast.parse(_strip_js_comments(source), filename=SCRIPT_FILENAME)
    _SandboxChecker().visit(tree)
    return compile(tree, SCRIPT_FILENAME, "exec")


class _ExecutionBudget:
    """Trace hook counting executed script lines against a step and time limit."""

    def __init__(self, max_steps: int, timeout: float):
        self.max_steps = max_steps
        self.timeout = timeout
        self.deadline = time.monotonic() + timeout
        self.steps = 0

    def trace_calls(self, frame, event, arg):
        if frame.f_code.co_filename != SCRIPT_FILENAME:
            return None
        return self.trace_lines

    def trace_lines(self, frame, event, arg):
        if event == "line":
            self.steps += 1
            if self.steps > self.max_steps:
                raise ScriptTimeoutError(f"Script exceeded the limit of {self.max_steps} steps")
            if time.monotonic() > self.deadline:
                raise ScriptTimeoutError(f"Script timed out after {self.timeout}s")
        return self.trace_lines


def _execute(code, bindings: dict[str, Any], timeout: float, max_steps: int) -> None:
    budget = _ExecutionBudget(max_steps=max_steps, timeout=timeout)
    sandbox_globals = {"__builtins__": dict(_SAFE_BUILTINS), **bindings}

    previous = sys.gettrace()
    sys.settrace(budget.trace_calls)
    try:
        exec(code, sandbox_globals)
    finally:
        sys.settrace(previous)


def _run_sandboxed(
    script: str,
    result: ExecutionResult,
    working: Environment | None,
    language: ScriptLanguage | str,
    timeout: float,
    max_steps: int,
) -> tuple[Environment | None, list[str], str | None, bool]:
    """Run ``script`` inside the current process; returns environment, logs, error and whether it was stopped."""
    logs: list[str] = []
    bindings = {
        "pm": _PostmanApi(_ResponseAccessor(result), _EnvironmentAccessor(working, logs)),
        "console": _Console(logs),
    }
    try:
        source = transform_js_script(script) if ScriptLanguage(language) == ScriptLanguage.JAVASCRIPT else script
        _execute(compile_script(source), bindings, timeout=timeout, max_steps=max_steps)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        logs.append(f"ERROR: {message}")
        return working, logs, message, isinstance(e, (ScriptRejectedError, ScriptTimeoutError))
    return working, logs, None, False


# ── Worker process ──

@lru_cache(maxsize=1)
def _process_context():
    if "forkserver" in multiprocessing.get_all_start_methods():
        context = multiprocessing.get_context("forkserver")
        context.set_forkserver_preload([__name__])
        return context
    return multiprocessing.get_context("spawn")


def _worker_main(conn, *args) -> None:
    with conn:
        conn.send(_run_sandboxed(*args))


def _run_in_worker(*args, timeout: float):
    """Run ``_run_sandboxed`` in a child process, killed if it is still busy ``WORKER_KILL_GRACE`` after ``timeout``."""
    context = _process_context()
    receiver, sender = context.Pipe(duplex=False)
    worker = context.Process(target=_worker_main, args=(sender, *args), daemon=True)
    worker.start()
    sender.close()
    try:
        if not receiver.poll(timeout + WORKER_KILL_GRACE):
            raise ScriptTimeoutError(f"Script timed out after {timeout}s")
        try:
            return receiver.recv()
        except EOFError:
            worker.join()
            raise ScriptError(f"Script process exited with code {worker.exitcode}") from None
    finally:
        receiver.close()
        if worker.is_alive():
            worker.kill()
        worker.join()


def run_post_response_script(
    script: str | None,
    result: ExecutionResult,
    environment: Environment | None = None,
    language: ScriptLanguage | str = ScriptLanguage.PYTHON,
    timeout: float = SCRIPT_TIMEOUT,
    max_steps: int = SCRIPT_MAX_STEPS,
) -> ScriptResult:
    """Run a post-response script against an execution result.

    The script runs in a separate process. The trace budget stops Python-level
    loops and keeps the changes made so far; a process still busy
    ``WORKER_KILL_GRACE`` seconds after the deadline is killed, and its changes
    are lost.

    The caller's ``environment`` is never modified; the script works on a deep
    copy which is returned as ``updated_environment`` for the caller to store.
    """
    working = environment.model_copy(deep=True) if environment is not None else None
    if not script or not script.strip():
        return ScriptResult(updated_environment=working)

    logger.debug("Running %s post-response script for request %s", language, result.request_id)
    try:
        working, logs, error, stopped = _run_in_worker(
            script, result, working, language, timeout, max_steps, timeout=timeout,
        )
    except ScriptError as e:
        logger.warning("Script for request %s killed: %s", result.request_id, e)
        return ScriptResult(updated_environment=working, logs=[f"ERROR: {e}"], error=str(e))

    if stopped:
        logger.warning("Script for request %s stopped: %s", result.request_id, error)
    return ScriptResult(updated_environment=working, logs=logs, error=error)
