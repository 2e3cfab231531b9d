"""
Tests for the HTTP API.

Outbound requests go through an ``httpx.MockTransport`` that echoes the
request back (see ``conftest.echo_handler``), so execution is tested end to
end without network access.
"""
import json

API = "/api/v1"


def _collection_id(client, folder_id):
    return client.get(f"{API}/folders/{folder_id}").json()["collection_id"]


def _workspace_id(client, folder_id):
    collection_id = _collection_id(client, folder_id)
    return client.get(f"{API}/collections/{collection_id}").json()["workspace_id"]


# ── Health ──

class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "version": "0.3.0"}


# ── Workspaces / collections / folders ──

class TestWorkspaces:
    def test_crud(self, client):
        resp = client.post(f"{API}/workspaces/", json={"name": "Team"})
        assert resp.status_code == 201
        ws = resp.json()

        assert client.get(f"{API}/workspaces/{ws['id']}").json()["name"] == "Team"
        assert [w["id"] for w in client.get(f"{API}/workspaces/").json()] == [ws["id"]]

        resp = client.patch(f"{API}/workspaces/{ws['id']}", json={"description": "shared"})
        assert resp.json()["description"] == "shared"
        assert resp.json()["name"] == "Team"

        assert client.delete(f"{API}/workspaces/{ws['id']}").status_code == 204
        resp = client.get(f"{API}/workspaces/{ws['id']}")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Workspace not found"

    def test_empty_name_rejected(self, client):
        assert client.post(f"{API}/workspaces/", json={"name": ""}).status_code == 422

    def test_workspace_collections(self, client, folder_id):
        workspace_id = _workspace_id(client, folder_id)
        collections = client.get(f"{API}/workspaces/{workspace_id}/collections").json()
        assert [c["name"] for c in collections] == ["Users API"]


class TestCollections:
    def test_unknown_workspace(self, client):
        resp = client.post(f"{API}/collections/", json={"name": "X", "workspace_id": "nope"})
        assert resp.status_code == 404

    def test_detail_includes_folders_and_requests(self, client, folder_id):
        client.post(f"{API}/requests/", json={"name": "List", "url": "https://x.test", "folder_id": folder_id})
        detail = client.get(f"{API}/collections/{_collection_id(client, folder_id)}").json()
        assert [f["name"] for f in detail["folders"]] == ["Users"]
        assert [r["name"] for r in detail["folders"][0]["requests"]] == ["List"]

    def test_delete_cascades(self, client, folder_id):
        req = client.post(f"{API}/requests/", json={"name": "List", "url": "https://x.test", "folder_id": folder_id}).json()
        assert client.delete(f"{API}/collections/{_collection_id(client, folder_id)}").status_code == 204
        assert client.get(f"{API}/folders/{folder_id}").status_code == 404
        assert client.get(f"{API}/requests/{req['id']}").status_code == 404


class TestFolders:
    def test_cycle_rejected(self, client, folder_id):
        collection_id = _collection_id(client, folder_id)
        child = client.post(
            f"{API}/folders/", json={"name": "Child", "collection_id": collection_id, "parent_id": folder_id},
        ).json()
        resp = client.patch(f"{API}/folders/{folder_id}", json={"parent_id": child["id"]})
        assert resp.status_code == 400

    def test_parent_from_other_collection_rejected(self, client, folder_id):
        workspace_id = _workspace_id(client, folder_id)
        other = client.post(f"{API}/collections/", json={"name": "Other", "workspace_id": workspace_id}).json()
        resp = client.post(f"{API}/folders/", json={"name": "F", "collection_id": other["id"], "parent_id": folder_id})
        assert resp.status_code == 400

    def test_folder_requests(self, client, folder_id):
        client.post(f"{API}/requests/", json={"name": "A", "url": "https://x.test/a", "folder_id": folder_id})
        requests = client.get(f"{API}/folders/{folder_id}/requests").json()
        assert [r["name"] for r in requests] == ["A"]


# ── Requests ──

class TestRequests:
    def test_unknown_folder(self, client):
        resp = client.post(f"{API}/requests/", json={"name": "A", "url": "https://x.test", "folder_id": "nope"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Folder not found"

    def test_update_and_delete(self, client, folder_id):
        req = client.post(f"{API}/requests/", json={"name": "A", "url": "https://x.test", "folder_id": folder_id}).json()
        assert req["method"] == "GET"
        resp = client.patch(f"{API}/requests/{req['id']}", json={"method": "POST"})
        assert resp.json()["method"] == "POST"
        assert resp.json()["url"] == "https://x.test"
        assert client.delete(f"{API}/requests/{req['id']}").status_code == 204
        assert client.delete(f"{API}/requests/{req['id']}").status_code == 404


# ── Environments ──

class TestEnvironments:
    def test_scoped_variable_requires_scope_id(self, client):
        resp = client.post(f"{API}/environments/", json={
            "name": "Dev",
            "variables": [{"key": "a", "value": "1", "scope": "collection"}],
        })
        assert resp.status_code == 422

    def test_crud(self, client):
        env = client.post(f"{API}/environments/", json={"name": "Dev"}).json()
        resp = client.patch(f"{API}/environments/{env['id']}", json={"variables": [{"key": "a", "value": "1"}]})
        assert resp.json()["variables"][0]["scope"] == "global"
        assert client.delete(f"{API}/environments/{env['id']}").status_code == 204
        assert client.get(f"{API}/environments/{env['id']}").status_code == 404


# ── Execution ──

class TestExecute:
    def _setup(self, client, folder_id, **request_fields):
        collection_id = _collection_id(client, folder_id)
        env = client.post(f"{API}/environments/", json={
            "name": "Dev",
            "variables": [
                {"key": "baseUrl", "value": "https://global.test"},
                {"key": "baseUrl", "value": "https://api.test", "scope": "collection", "scope_id": collection_id},
                {"key": "userId", "value": "42"},
                {"key": "token", "value": "old"},
            ],
            "headers": [{"key": "X-Env", "value": "dev"}],
        }).json()
        payload = {
            "name": "Create user",
            "method": "POST",
            "url": "{{baseUrl}}/users/{{userId}}",
            "folder_id": folder_id,
            "headers": [
                {"key": "Authorization", "value": "Bearer {{token}}"},
                {"key": "X-Disabled", "value": "1", "enabled": False},
            ],
            "params": [{"key": "user", "value": "{{userId}}"}],
            "body": {"type": "json", "content": '{"id": "{{userId}}"}'},
            **request_fields,
        }
        req = client.post(f"{API}/requests/", json=payload).json()
        return env, req

    def test_resolves_sends_and_records(self, client, folder_id):
        env, req = self._setup(client, folder_id)
        resp = client.post(f"{API}/requests/{req['id']}/execute", json={"environment_id": env["id"]})
        assert resp.status_code == 200
        data = resp.json()

        assert data["resolved_request"]["url"] == "https://api.test/users/42"
        assert data["resolved_request"]["body"] == '{"id": "42"}'
        assert [h["key"] for h in data["resolved_request"]["headers"]] == ["X-Env", "Authorization"]
        assert data["result"]["status"] == 200
        assert data["script"] is None

        echoed = json.loads(data["result"]["body"])
        assert echoed["method"] == "POST"
        assert echoed["url"] == "https://api.test/users/42?user=42"
        assert echoed["headers"]["authorization"] == "Bearer old"
        assert echoed["headers"]["x-env"] == "dev"
        assert echoed["headers"]["content-type"] == "application/json"
        assert "x-disabled" not in echoed["headers"]
        assert echoed["body"] == '{"id": "42"}'

        history = client.get(f"{API}/requests/{req['id']}/history").json()
        assert [h["id"] for h in history] == [data["result"]["id"]]

    def test_script_updates_stored_environment(self, client, folder_id):
        env, req = self._setup(
            client, folder_id,
            script='pm.environment.set("token", pm.response.json()["token"])\nconsole.log(pm.response.status)',
        )
        data = client.post(f"{API}/requests/{req['id']}/execute", json={"environment_id": env["id"]}).json()
        assert data["script"]["error"] is None
        assert data["script"]["logs"] == ['Environment variable "token" = "abc123"', "200"]

        stored = client.get(f"{API}/environments/{env['id']}").json()
        assert {v["key"]: v["value"] for v in stored["variables"] if v["key"] == "token"} == {"token": "abc123"}

    def test_failing_script_still_returns_result(self, client, folder_id):
        env, req = self._setup(client, folder_id, script="require('fs')")
        data = client.post(f"{API}/requests/{req['id']}/execute", json={"environment_id": env["id"]}).json()
        assert data["result"]["status"] == 200
        assert "is not defined" in data["script"]["error"]

    def test_network_error_is_status_zero(self, client, folder_id):
        req = client.post(f"{API}/requests/", json={
            "name": "Down", "url": "https://unreachable.test/ping", "folder_id": folder_id,
        }).json()
        data = client.post(f"{API}/requests/{req['id']}/execute", json={}).json()
        assert data["result"]["status"] == 0
        assert json.loads(data["result"]["body"])["type"] == "ConnectError"

    def test_unresolved_variables_are_left_in_place(self, client, folder_id):
        req = client.post(f"{API}/requests/", json={
            "name": "Raw", "url": "https://x.test/{{missing}}", "folder_id": folder_id,
        }).json()
        data = client.post(f"{API}/requests/{req['id']}/execute", json={}).json()
        assert data["resolved_request"]["url"] == "https://x.test/{{missing}}"

    def test_unknown_request(self, client):
        resp = client.post(f"{API}/requests/nope/execute", json={})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Request not found"

    def test_inline_request(self, client):
        inline = {
            "id": "local-1",
            "name": "Inline",
            "method": "GET",
            "url": "{{host}}/ping",
            "folder_id": "local-folder",
        }
        environment = {"id": "local-env", "name": "Local", "variables": [{"key": "host", "value": "https://inline.test"}]}
        collection = {
            "id": "local-col", "name": "Local", "workspace_id": "local-ws",
            "created_at": "2024-01-01T00:00:00", "updated_at": "2024-01-01T00:00:00",
        }
        data = client.post(f"{API}/requests/local-1/execute", json={
            "request": inline, "environment": environment, "collection": collection,
        }).json()
        assert data["resolved_request"]["url"] == "https://inline.test/ping"
        assert data["result"]["status"] == 200

    def test_resolve_preview(self, client, folder_id):
        env, req = self._setup(client, folder_id)
        resp = client.post(f"{API}/requests/{req['id']}/resolve", json={
            "text": "{{baseUrl}}/{{userId}}/{{nope}}", "environment_id": env["id"],
        })
        assert resp.json() == {"text": "https://api.test/42/{{nope}}"}

    def test_resolve_unknown_environment(self, client, folder_id):
        env, req = self._setup(client, folder_id)
        resp = client.post(f"{API}/requests/{req['id']}/resolve", json={"text": "x", "environment_id": "nope"})
        assert resp.status_code == 404


# ── Imports ──

OPENAPI_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Petstore"},
    "servers": [{"url": "https://petstore.test"}],
    "paths": {
        "/pets": {"get": {"summary": "List pets"}, "post": {"summary": "Create pet"}},
        "/stores": {"get": {"summary": "List stores"}},
        "/": {"get": {"summary": "Root"}},
    },
    "components": {"securitySchemes": {"bearer": {"type": "http", "scheme": "bearer"}}},
}

POSTMAN_COLLECTION = {
    "info": {"name": "Demo"},
    "item": [
        {"name": "Ping", "request": {"method": "GET", "url": "{{baseUrl}}/ping"}},
        {"name": "Users", "item": [
            {"name": "List", "request": {"method": "GET", "url": "{{baseUrl}}/users"}},
            {"name": "Odd", "request": {"method": "OPTIONS", "url": "{{baseUrl}}/users"}},
        ]},
    ],
    "variable": [{"key": "baseUrl", "value": "https://demo.test"}],
}


class TestCurlImport:
    def test_parse_only(self, client):
        resp = client.post(f"{API}/import-export/curl", json={"command": "curl https://x.test/a?b=1 -d 'x=1'"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["request"] is None
        assert data["parsed"]["method"] == "POST"
        assert data["parsed"]["params"] == [{"key": "b", "value": "1", "enabled": True}]

    def test_store_into_folder(self, client, folder_id):
        resp = client.post(f"{API}/import-export/curl", json={
            "command": "curl -X PUT https://x.test/users/1 -H 'Content-Type: application/json' -d '{\"a\":1}'",
            "folder_id": folder_id,
        })
        request = resp.json()["request"]
        assert request["name"] == "PUT https://x.test/users/1"
        assert request["method"] == "PUT"
        assert request["body"]["type"] == "json"
        assert client.get(f"{API}/requests/{request['id']}").status_code == 200

    def test_form_body_type(self, client, folder_id):
        resp = client.post(f"{API}/import-export/curl", json={
            "command": "curl https://x.test/login -H 'Content-Type: application/x-www-form-urlencoded' -d 'u=a&p=b'",
            "folder_id": folder_id,
            "name": "Login",
        })
        request = resp.json()["request"]
        assert request["name"] == "Login"
        assert request["body"] == {"type": "form", "content": "u=a&p=b"}

    def test_invalid_command(self, client):
        resp = client.post(f"{API}/import-export/curl", json={"command": "wget https://x.test"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Could not parse cURL command"

    def test_unknown_folder(self, client):
        resp = client.post(f"{API}/import-export/curl", json={"command": "curl https://x.test", "folder_id": "nope"})
        assert resp.status_code == 404


class TestOpenApiImport:
    def test_import_inline_spec(self, client, folder_id):
        workspace_id = _workspace_id(client, folder_id)
        resp = client.post(f"{API}/import-export/openapi", json={"spec": OPENAPI_SPEC, "workspace_id": workspace_id})
        assert resp.status_code == 201
        result = resp.json()
        assert result["folders"] == 3
        assert result["requests"] == 4

        detail = client.get(f"{API}/collections/{result['collection_id']}").json()
        assert detail["name"] == "Petstore"
        assert sorted(f["name"] for f in detail["folders"]) == ["General", "Pets", "Stores"]
        pets = next(f for f in detail["folders"] if f["name"] == "Pets")
        assert {r["url"] for r in pets["requests"]} == {"{{baseUrl}}/pets"}

        [env_id] = result["environment_ids"]
        env = client.get(f"{API}/environments/{env_id}").json()
        assert env["name"] == "Petstore Environment"
        base = next(v for v in env["variables"] if v["key"] == "baseUrl")
        assert base["value"] == "https://petstore.test"
        assert base["scope"] == "collection"
        assert base["scope_id"] == result["collection_id"]
        assert env["headers"] == [{"key": "Authorization", "value": "Bearer {{bearerToken}}", "enabled": True}]

    def test_imported_request_executes_with_environment(self, client, folder_id):
        workspace_id = _workspace_id(client, folder_id)
        result = client.post(
            f"{API}/import-export/openapi", json={"spec": OPENAPI_SPEC, "workspace_id": workspace_id},
        ).json()
        detail = client.get(f"{API}/collections/{result['collection_id']}").json()
        stores = next(f for f in detail["folders"] if f["name"] == "Stores")
        data = client.post(
            f"{API}/requests/{stores['requests'][0]['id']}/execute",
            json={"environment_id": result["environment_ids"][0]},
        ).json()
        assert data["resolved_request"]["url"] == "https://petstore.test/stores"

    def test_missing_input(self, client, folder_id):
        resp = client.post(f"{API}/import-export/openapi", json={"workspace_id": _workspace_id(client, folder_id)})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Either OpenAPI URL or spec data is required"

    def test_unknown_workspace(self, client):
        resp = client.post(f"{API}/import-export/openapi", json={"spec": OPENAPI_SPEC, "workspace_id": "nope"})
        assert resp.status_code == 404

    def test_unparseable_spec(self, client, folder_id):
        resp = client.post(f"{API}/import-export/openapi", json={
            "spec": "just a string", "workspace_id": _workspace_id(client, folder_id),
        })
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Failed to parse OpenAPI spec")


class TestPostmanImport:
    def test_import_collection(self, client, folder_id):
        workspace_id = _workspace_id(client, folder_id)
        resp = client.post(f"{API}/import-export/postman", json={
            "collection": POSTMAN_COLLECTION, "workspace_id": workspace_id,
        })
        assert resp.status_code == 201
        result = resp.json()
        assert result["folders"] == 2
        assert result["requests"] == 3

        detail = client.get(f"{API}/collections/{result['collection_id']}").json()
        users = next(f for f in detail["folders"] if f["name"] == "Users")
        assert sorted(r["method"] for r in users["requests"]) == ["GET", "GET"]

        [env_id] = result["environment_ids"]
        env = client.get(f"{API}/environments/{env_id}").json()
        assert env["name"] == "Demo Variables"
        assert env["variables"][0]["scope_id"] == result["collection_id"]

    def test_import_environment_only(self, client):
        resp = client.post(f"{API}/import-export/postman", json={
            "environment": {"name": "Staging", "values": [{"key": "host", "value": "s.test"}]},
        })
        assert resp.status_code == 201
        [env_id] = resp.json()["environment_ids"]
        assert client.get(f"{API}/environments/{env_id}").json()["name"] == "Staging"

    def test_collection_needs_workspace(self, client):
        resp = client.post(f"{API}/import-export/postman", json={"collection": POSTMAN_COLLECTION})
        assert resp.status_code == 400

    def test_missing_input(self, client):
        resp = client.post(f"{API}/import-export/postman", json={})
        assert resp.status_code == 400

    def test_invalid_collection(self, client, folder_id):
        resp = client.post(f"{API}/import-export/postman", json={
            "collection": {"info": {}}, "workspace_id": _workspace_id(client, folder_id),
        })
        assert resp.status_code == 400
        assert "Invalid Postman collection format" in resp.json()["detail"]
