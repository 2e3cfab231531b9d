"""Tests for the sandboxed post-response script runner."""
import json
import time
from datetime import datetime

import pytest

from restbench.core.errors import ScriptRejectedError
from restbench.models.environment import VariableScope
from restbench.models.request import ScriptLanguage
from restbench.schemas.environment import Environment, EnvironmentVariable
from restbench.schemas.execution import ExecutionResult
from restbench.services.script_runner import WORKER_KILL_GRACE, compile_script, run_post_response_script


def _result(body='{"token": "abc123", "user": {"id": 7, "roles": ["admin"]}}', status=200):
    return ExecutionResult(
        id="res-1",
        request_id="req-1",
        status=status,
        status_text="OK",
        headers={"content-type": "application/json"},
        body=body,
        timestamp=datetime(2024, 1, 1),
    )


def _environment(*variables):
    return Environment(id="env-1", name="Dev", variables=list(variables))


def _values(environment):
    return {v.key: v.value for v in environment.variables}


# ── Environment access ──

class TestEnvironmentAccess:
    def test_set_from_response_body(self):
        out = run_post_response_script(
            'pm.environment.set("token", pm.response.json()["token"])',
            _result(),
            _environment(),
        )
        assert out.error is None
        assert _values(out.updated_environment) == {"token": "abc123"}
        assert out.updated_environment.variables[0].scope == VariableScope.GLOBAL
        assert out.logs == ['Environment variable "token" = "abc123"']

    def test_set_updates_existing_and_keeps_scope(self):
        env = _environment(EnvironmentVariable(
            key="token", value="old", scope=VariableScope.COLLECTION, scope_id="col-1",
        ))
        out = run_post_response_script('pm.environment.set("token", "new")', _result(), env)
        var = out.updated_environment.variables[0]
        assert (var.value, var.scope, var.scope_id) == ("new", VariableScope.COLLECTION, "col-1")
        assert len(out.updated_environment.variables) == 1

    def test_set_stringifies_values(self):
        script = "\n".join([
            'pm.environment.set("n", 42)',
            'pm.environment.set("flag", True)',
            'pm.environment.set("nothing", None)',
            'pm.environment.set("obj", {"a": 1})',
        ])
        out = run_post_response_script(script, _result(), _environment())
        assert _values(out.updated_environment) == {"n": "42", "flag": "true", "nothing": "null", "obj": '{"a":1}'}

    def test_get_returns_first_enabled(self):
        env = _environment(
            EnvironmentVariable(key="host", value="disabled", enabled=False),
            EnvironmentVariable(key="host", value="enabled"),
        )
        out = run_post_response_script('console.log(pm.environment.get("host"))', _result(), env)
        assert out.logs == ["enabled"]

    def test_get_missing_is_none(self):
        out = run_post_response_script('console.log(pm.environment.get("nope"))', _result(), _environment())
        assert out.logs == ["null"]

    def test_unset_removes_every_match(self):
        env = _environment(
            EnvironmentVariable(key="token", value="a"),
            EnvironmentVariable(key="token", value="b", scope=VariableScope.WORKSPACE, scope_id="ws"),
            EnvironmentVariable(key="keep", value="c"),
        )
        out = run_post_response_script('pm.environment.unset("token")', _result(), env)
        assert _values(out.updated_environment) == {"keep": "c"}
        assert out.logs == ['Environment variable "token" removed']

    def test_set_without_environment_warns(self):
        out = run_post_response_script('pm.environment.set("token", "x")', _result(), None)
        assert out.error is None
        assert out.updated_environment is None
        assert out.logs == ['WARN: Cannot set environment variable "token" - no environment selected']

    def test_caller_environment_is_not_mutated(self):
        env = _environment(EnvironmentVariable(key="token", value="old"))
        run_post_response_script('pm.environment.set("token", "new")', _result(), env)
        assert env.variables[0].value == "old"


# ── Response access ──

class TestResponseAccess:
    def test_status_headers_and_attribute_access(self):
        script = "\n".join([
            "console.log(pm.response.status, pm.response.code)",
            'console.log(pm.response.headers["content-type"])',
            "console.log(pm.response.body.user.id, pm.response.body.user.roles[0])",
            "console.log(pm.response.body.missing)",
        ])
        out = run_post_response_script(script, _result(), _environment())
        assert out.logs == ["200 200", "application/json", "7 admin", "null"]

    def test_text_returns_raw_body(self):
        out = run_post_response_script("console.log(pm.response.text())", _result(body="plain"), _environment())
        assert out.logs == ["plain"]

    def test_non_json_body_stays_a_string(self):
        out = run_post_response_script("console.log(pm.response.json() == 'plain')", _result(body="plain"), None)
        assert out.logs == ["true"]

    def test_keys_named_like_dict_methods(self):
        body = json.dumps({"items": [{"id": 7}], "keys": "k", "get": 1, "count": 3})
        script = "\n".join([
            'pm.environment.set("n", pm.response.json().items[0].id)',
            "console.log(pm.response.body.keys, pm.response.body.get, pm.response.body.count)",
        ])
        out = run_post_response_script(script, _result(body=body), _environment())
        assert out.error is None
        assert _values(out.updated_environment) == {"n": "7"}
        assert out.logs[-1] == "k 1 3"


# ── Console ──

class TestConsole:
    def test_levels_and_serialization(self):
        script = "\n".join([
            'console.log("a", 1, {"k": [1, 2]})',
            'console.warn("careful")',
            'console.error("broken")',
        ])
        out = run_post_response_script(script, _result(), None)
        assert out.logs == ['a 1 {"k":[1,2]}', "WARN: careful", "ERROR: broken"]


# ── Sandbox ──

class TestSandbox:
    def test_empty_script_is_a_no_op(self):
        env = _environment(EnvironmentVariable(key="a", value="1"))
        out = run_post_response_script("   \n", _result(), env)
        assert out.error is None
        assert out.logs == []
        assert _values(out.updated_environment) == {"a": "1"}

    @pytest.mark.parametrize("script", [
        'require("fs")',
        'open("/etc/passwd")',
        "eval('1')",
        "print('hi')",
    ])
    def test_unknown_names_fail_gracefully(self, script):
        out = run_post_response_script(script, _result(), _environment())
        assert out.error is not None
        assert "is not defined" in out.error
        assert out.logs[-1] == f"ERROR: {out.error}"

    @pytest.mark.parametrize("script", [
        "import os",
        "from os import path",
        "x = ().__class__",
        "__import__('os')",
        "pm.response.json.__globals__",
        "'{0.__class__}'.format(1)",
        "global x",
    ])
    def test_forbidden_constructs_rejected(self, script):
        with pytest.raises(ScriptRejectedError):
            compile_script(script)

    def test_rejected_script_reports_error(self):
        out = run_post_response_script("import os", _result(), _environment())
        assert "import is not allowed" in out.error

    @pytest.mark.parametrize("script", [
        "try:\n    x = 1\nfinally:\n    x = 2",
        "try:\n    x = 1\nexcept:\n    pass",
        "try:\n    while True:\n        pass\nexcept Exception:\n    pm.environment.set('escaped', 'yes')",
    ])
    def test_try_rejected(self, script):
        with pytest.raises(ScriptRejectedError, match="try is not allowed"):
            compile_script(script)

    def test_infinite_loop_is_stopped(self):
        out = run_post_response_script("while True:\n    pass", _result(), _environment(), max_steps=1_000)
        assert "exceeded the limit of 1000 steps" in out.error

    def test_loop_inside_function_is_stopped(self):
        script = "def spin():\n    while True:\n        pass\nspin()"
        out = run_post_response_script(script, _result(), None, max_steps=1_000)
        assert "exceeded the limit" in out.error

    def test_deadline_is_enforced(self):
        out = run_post_response_script("while True:\n    pass", _result(), None, timeout=0.05, max_steps=10**9)
        assert "timed out after 0.05s" in out.error

    @pytest.mark.parametrize("script", ["x = max(range(10**12))", "x = 9**9**9"])
    def test_long_builtin_call_is_killed(self, script):
        env = _environment(EnvironmentVariable(key="a", value="1"))
        started = time.monotonic()
        out = run_post_response_script(script, _result(), env, timeout=0.2)
        assert time.monotonic() - started < 0.2 + WORKER_KILL_GRACE + 3
        assert out.error == "Script timed out after 0.2s"
        assert out.logs == [f"ERROR: {out.error}"]
        assert _values(out.updated_environment) == {"a": "1"}

    def test_changes_before_error_are_kept(self):
        script = 'pm.environment.set("before", "1")\nint("boom")\npm.environment.set("after", "2")'
        out = run_post_response_script(script, _result(), _environment())
        assert out.error.startswith("invalid literal for int()")
        assert _values(out.updated_environment) == {"before": "1"}
        assert out.logs == ['Environment variable "before" = "1"', f"ERROR: {out.error}"]

    def test_js_line_comments_allowed(self):
        out = run_post_response_script("// note\nconsole.log('ok')", _result(), None)
        assert out.logs == ["ok"]


# ── JavaScript ──

class TestJavaScript:
    def test_postman_style_script(self):
        script = "\n".join([
            "const data = pm.response.json();",
            "if (pm.response.code === 200 && data.token) {",
            '  pm.environment.set("token", data.token);',
            "} else {",
            '  console.warn("no token");',
            "}",
            "console.log(`user ${data.user.id}`);",
        ])
        out = run_post_response_script(script, _result(), _environment(), language=ScriptLanguage.JAVASCRIPT)
        assert out.error is None
        assert _values(out.updated_environment) == {"token": "abc123"}
        assert out.logs[-1] == "user 7"

    def test_array_length_and_loop(self):
        script = "\n".join([
            "let count = 0;",
            "for (const role of pm.response.json().user.roles) {",
            "  count++;",
            "}",
            "console.log(count === pm.response.json().user.roles.length);",
        ])
        out = run_post_response_script(script, _result(), None, language="javascript")
        assert out.error is None
        assert out.logs == ["true"]

    def test_json_literal_output(self):
        script = 'pm.environment.set("obj", { ok: true, n: null });'
        out = run_post_response_script(script, _result(), _environment(), language=ScriptLanguage.JAVASCRIPT)
        assert json.loads(_values(out.updated_environment)["obj"]) == {"ok": True, "n": None}

    def test_items_key_length_and_loop(self):
        body = json.dumps({"items": [{"id": 1}, {"id": 2}, {"id": 4}]})
        script = "\n".join([
            "const data = pm.response.json();",
            "let total = 0;",
            "for (const item of data.items) {",
            "  total += item.id;",
            "}",
            'pm.environment.set("count", data.items.length);',
            'pm.environment.set("total", total);',
        ])
        out = run_post_response_script(script, _result(body=body), _environment(), language=ScriptLanguage.JAVASCRIPT)
        assert out.error is None
        assert _values(out.updated_environment) == {"count": "3", "total": "7"}
