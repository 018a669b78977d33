import pytest

from conftest import AUTH

BODY = {"model": "deepseek-chat", "messages": [{"role": "user", "content": "Hi"}]}


@pytest.mark.parametrize("path", ["/chat/completions", "/v1/chat/completions"])
def test_both_completion_paths_are_routed(client, upstream, path):
    r = client.post(path, headers=AUTH, json=BODY)
    assert r.status_code == 200
    assert len(upstream.calls) == 1


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "test-secret"},
        {"Authorization": "Token test-secret"},
        {"Authorization": "Bearer wrong-secret"},
        {"Authorization": "Bearer TEST-SECRET"},
    ],
)
def test_bad_credentials_are_rejected(client, upstream, headers):
    r = client.post("/v1/chat/completions", headers=headers, json=BODY)
    assert r.status_code == 401
    error = r.json()["error"]
    assert error["type"] == "authentication_error"
    assert error["param"] is None
    assert error["message"]
    assert upstream.calls == []


def test_auth_disabled_without_configured_key(client, upstream, settings):
    settings.API_KEY = None
    r = client.post("/v1/chat/completions", json=BODY)
    assert r.status_code == 200
    assert len(upstream.calls) == 1


def test_malformed_json_is_rejected(client, upstream):
    r = client.post(
        "/v1/chat/completions",
        headers={**AUTH, "Content-Type": "application/json"},
        content=b'{"model": "deepseek-chat", "messages": [',
    )
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["type"] == "invalid_request_error"
    assert error["param"] is None
    assert upstream.calls == []


@pytest.mark.parametrize(
    "body",
    [
        {"model": "deepseek-chat", "messages": "Hi"},
        {"model": "deepseek-chat"},
        {"model": "deepseek-chat", "messages": [{"role": "tool", "content": "Hi"}]},
    ],
)
def test_invalid_messages_are_rejected(client, upstream, body):
    r = client.post("/v1/chat/completions", headers=AUTH, json=body)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "invalid_request_error"
    assert upstream.calls == []


def test_unknown_path_returns_404(client):
    r = client.post("/foo", headers=AUTH, json=BODY)
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "not_found_error"
    assert r.headers["access-control-allow-origin"] == "*"


def test_docs_are_not_served(client):
    assert client.get("/docs").status_code == 404


def test_wrong_method_returns_405(client, upstream):
    r = client.get("/v1/chat/completions", headers=AUTH)
    assert r.status_code == 405
    assert r.json()["error"]["type"] == "method_not_allowed"
    assert upstream.calls == []


@pytest.mark.parametrize("path", ["/v1/chat/completions", "/anything"])
def test_options_preflight(client, path):
    r = client.options(path)
    assert r.status_code == 204
    assert r.headers["access-control-allow-origin"] == "*"
    assert r.headers["access-control-allow-methods"] == "GET, POST, PUT, DELETE, OPTIONS"
    assert r.headers["access-control-allow-headers"] == "Content-Type, Authorization"
    assert r.headers["access-control-max-age"] == "86400"


def test_cors_headers_on_success_and_error(client):
    ok = client.post("/v1/chat/completions", headers=AUTH, json=BODY)
    denied = client.post("/v1/chat/completions", json=BODY)
    for r in (ok, denied):
        assert r.headers["access-control-allow-origin"] == "*"
        assert r.headers["access-control-allow-headers"] == "Content-Type, Authorization"


@pytest.mark.parametrize("path", ["/v1/chat/completions/", "/chat/completions/"])
def test_trailing_slash_is_not_found(client, upstream, path):
    r = client.post(path, headers=AUTH, json=BODY, follow_redirects=False)
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "not_found_error"
    assert upstream.calls == []


def test_credentials_checked_before_body(client, upstream):
    r = client.post(
        "/v1/chat/completions",
        headers={"Content-Type": "application/json"},
        content=b"{not json",
    )
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "authentication_error"
    assert r.headers["access-control-allow-origin"] == "*"
    assert upstream.calls == []


def test_malformed_json_message_has_no_offset(client):
    r = client.post(
        "/v1/chat/completions",
        headers={**AUTH, "Content-Type": "application/json"},
        content=b"{not json",
    )
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["message"] == "JSON decode error"
    assert error["code"] == "invalid_json"
