from __future__ import annotations

import pytest
import requests
from fastapi.testclient import TestClient

from context_server.api.auth import get_api_key
from context_server.api.http_api import app, get_adapter, get_store
from context_server.llm.service import ModelAdapter

from tests.conftest import FakeResponse, FakeSession


@pytest.fixture
def model_session() -> FakeSession:
    return FakeSession(response=FakeResponse(body={"completion": "model says hi"}))


@pytest.fixture
def client(store, model_session):
    adapter = ModelAdapter(
        endpoint="http://model.test/v1/completions",
        provider="anthropic",
        session=model_session,
    )
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_adapter] = lambda: adapter
    app.dependency_overrides[get_api_key] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _session_with_context(client, data) -> tuple[str, str]:
    session_id = client.post("/api/session", json={"sessionId": "s1"}).json()["id"]
    context_id = client.post("/api/context", json={"sessionId": session_id, "data": data}).json()["id"]
    return session_id, context_id


def test_root_banner(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


# ============================================================
# Authentication
# ============================================================

def test_missing_authorization_header_is_401(client) -> None:
    app.dependency_overrides[get_api_key] = lambda: "secret"

    response = client.get("/api/session/s1")

    assert response.status_code == 401
    assert response.json() == {
        "error": {"message": "Authorization header is required", "code": "UNAUTHORIZED"}
    }


def test_non_bearer_scheme_is_401(client) -> None:
    app.dependency_overrides[get_api_key] = lambda: "secret"

    response = client.get("/api/session/s1", headers={"Authorization": "Basic secret"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_wrong_key_is_403(client) -> None:
    app.dependency_overrides[get_api_key] = lambda: "secret"

    response = client.get("/api/session/s1", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_valid_key_passes(client) -> None:
    app.dependency_overrides[get_api_key] = lambda: "secret"

    response = client.post(
        "/api/session",
        json={"sessionId": "s1"},
        headers={"Authorization": "Bearer secret"},
    )

    assert response.status_code == 201
    assert response.json()["id"] == "s1"


# ============================================================
# Sessions and contexts
# ============================================================

def test_session_lifecycle(client) -> None:
    assert client.post("/api/session", json={"sessionId": "s1", "metadata": {"u": 1}}).status_code == 201
    assert client.post("/api/session", json={"sessionId": "s1"}).json()["error"]["code"] == "SESSION_EXISTS"

    patched = client.patch("/api/session/s1", json={"metadata": {"u": 2}})
    assert patched.json()["metadata"] == {"u": 2}

    assert client.delete("/api/session/s1").status_code == 204

    missing = client.get("/api/session/s1")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "SESSION_NOT_FOUND"


def test_context_lifecycle(client) -> None:
    session_id, context_id = _session_with_context(client, {"a": 1})

    listed = client.get(f"/api/session/{session_id}/contexts").json()
    assert [c["id"] for c in listed] == [context_id]

    patched = client.patch(f"/api/context/{context_id}", json={"data": {"b": 2}})
    assert patched.json()["data"] == {"a": 1, "b": 2}

    assert client.delete(f"/api/context/{context_id}").status_code == 204
    missing = client.get(f"/api/context/{context_id}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "CONTEXT_NOT_FOUND"


def test_patch_replaces_non_object_context_data(client) -> None:
    _, context_id = _session_with_context(client, ["a", "b"])

    patched = client.patch(f"/api/context/{context_id}", json={"data": {"x": 1}})

    assert patched.status_code == 200
    assert patched.json()["data"] == {"x": 1}
    assert client.get(f"/api/context/{context_id}").json()["data"] == {"x": 1}


class _BrokenStore:
    def get_session(self, session_id):
        raise RuntimeError("disk on fire")


def test_unexpected_errors_use_the_error_envelope(client) -> None:
    app.dependency_overrides[get_store] = lambda: _BrokenStore()

    response = TestClient(app, raise_server_exceptions=False).get("/api/session/s1")

    assert response.status_code == 500
    assert response.json() == {"error": {"message": "disk on fire", "code": "INTERNAL_ERROR"}}


def test_cors_headers_allow_any_origin(client) -> None:
    response = client.get("/", headers={"Origin": "http://browser.test"})

    assert response.headers["access-control-allow-origin"] == "*"


def test_cors_preflight_is_answered(client) -> None:
    response = client.options(
        "/api/session",
        headers={
            "Origin": "http://browser.test",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization,content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_create_context_requires_session_id(client) -> None:
    response = client.post("/api/context", json={"data": {"a": 1}})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_SESSION_ID"


def test_create_context_for_unknown_session_is_404(client) -> None:
    response = client.post("/api/context", json={"sessionId": "nope", "data": {}})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"


# ============================================================
# Merge / summarize
# ============================================================

def test_merge_requires_context_ids(client) -> None:
    response = client.post("/api/context/merge", json={"contextIds": []})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_CONTEXT_IDS"


def test_merge_unknown_context_is_404(client) -> None:
    response = client.post("/api/context/merge", json={"contextIds": ["ctx_missing"]})

    assert response.status_code == 404


def test_structural_merge_can_be_stored_in_session(client, model_session) -> None:
    session_id, first = _session_with_context(client, {"a": 1, "b": 2})
    second = client.post("/api/context", json={"sessionId": session_id, "data": {"b": 3, "c": 4}}).json()["id"]

    merged = client.post("/api/context/merge", json={"contextIds": [first, second]})
    assert merged.json() == {"data": {"a": 1, "b": 3, "c": 4}}

    stored = client.post(
        "/api/context/merge",
        json={"contextIds": [first, second], "sessionId": session_id},
    )
    assert stored.status_code == 201
    assert stored.json()["data"] == {"a": 1, "b": 3, "c": 4}
    assert model_session.calls == []


def test_structural_merge_of_non_object_data_is_400(client, model_session) -> None:
    session_id, first = _session_with_context(client, {"a": 1})
    second = client.post("/api/context", json={"sessionId": session_id, "data": ["x"]}).json()["id"]

    response = client.post("/api/context/merge", json={"contextIds": [first, second]})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "CONTEXT_MERGE_FAILED"
    assert "list data" in error["message"]
    assert model_session.calls == []


def test_summarize_route_returns_summary(client, model_session) -> None:
    _, context_id = _session_with_context(client, {"notes": "long"})

    response = client.post(f"/api/context/{context_id}/summarize", json={})

    assert response.status_code == 200
    assert response.json()["data"]["summary"] == "model says hi"
    assert len(model_session.calls) == 1


def test_summarize_failure_is_502(client, model_session) -> None:
    _, context_id = _session_with_context(client, {"notes": "long"})
    model_session.error = requests.exceptions.ConnectionError("upstream down")

    response = client.post(f"/api/context/{context_id}/summarize", json={})

    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "CONTEXT_SUMMARIZATION_FAILED"
    assert "upstream down" in error["message"]


# ============================================================
# Model routes
# ============================================================

def test_query_requires_prompt(client) -> None:
    response = client.post("/api/model/query", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_PROMPT"


def test_query_with_context_and_session(client, model_session) -> None:
    session_id, context_id = _session_with_context(client, {"lang": "en"})

    response = client.post(
        "/api/model/query",
        json={"prompt": "Hi", "contextId": context_id, "sessionId": session_id},
    )

    body = response.json()
    assert body["completion"] == "model says hi"
    assert body["context"]["data"]["prompt"] == "Hi"
    assert body["context"]["data"]["response"] == "model says hi"
    assert model_session.last_payload["prompt"] == '{"lang":"en"}\n\nHuman: Hi\n\nAssistant:'


def test_query_unknown_context_is_404(client) -> None:
    response = client.post("/api/model/query", json={"prompt": "Hi", "contextId": "ctx_x"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "CONTEXT_NOT_FOUND"


def test_query_failure_is_502(client, model_session) -> None:
    model_session.response = FakeResponse(status_code=500, body={})

    response = client.post("/api/model/query", json={"prompt": "Hi"})

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "MODEL_QUERY_FAILED"


def test_process_validation(client) -> None:
    assert client.post("/api/model/process", json={"task": "t"}).json()["error"]["code"] == "MISSING_CONTEXT_ID"
    assert client.post("/api/model/process", json={"contextId": "c"}).json()["error"]["code"] == "MISSING_TASK"


def test_process_stores_result_in_session(client) -> None:
    session_id, context_id = _session_with_context(client, {"text": "hola"})

    response = client.post(
        "/api/model/process",
        json={"contextId": context_id, "task": "translate", "sessionId": session_id},
    )

    body = response.json()
    assert body["result"] == "model says hi"
    assert body["context"]["data"]["task"] == "translate"
    assert body["context"]["data"]["processed"] == "model says hi"
