"""
Unit tests for Gateway main service.
"""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mehm_gateway.app.main import create_app
from shared.test_helpers import (
    MEHMS_HOST,
    USERS_HOST,
    MockUser,
    StubBackend,
    create_test_config,
    mock_data_factory,
    mock_token_generator,
    unreachable,
)

# (method, url, json body) with input that passes validation on every route
ROUTE_CALLS = [
    ("GET", "/api/mehms", None),
    ("GET", "/api/mehms/1", None),
    ("POST", "/api/mehms/1/like", None),
    ("POST", "/api/mehms/1/remove", None),
    ("POST", "/api/mehms/1/update", {"title": "t", "description": "d"}),
    ("GET", "/api/user", None),
    ("GET", "/api/user/all", None),
    ("GET", "/api/user/elevate?id=2", None),
    ("POST", "/api/user/delete", {"id": "user1"}),
    ("GET", "/api/comments/1", None),
    ("POST", "/api/comments/new", {"mehmId": 1, "comment": "hi"}),
    ("POST", "/api/comments/update", {"id": 1, "comment": "hi"}),
    ("POST", "/api/comments/remove?commentId=1", None),
]

ADMIN_ONLY_CALLS = [
    ("GET", "/api/user/all", None),
    ("GET", "/api/user/elevate?id=2", None),
    ("POST", "/api/mehms/1/update", {"title": "t", "description": "d"}),
]


class TestGatewayService:
    """Test cases for GatewayService."""

    @pytest.fixture
    def backend(self):
        return StubBackend(body=json.dumps(mock_data_factory.create_test_mehms()).encode())

    @pytest.fixture
    def app(self, backend):
        return create_app(create_test_config(), transport=backend.transport)

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    @pytest.fixture
    def user(self):
        return MockUser(user_id="user1", username="john.doe", email="john.doe@example.com")

    @pytest.fixture
    def admin(self):
        return MockUser(user_id="admin", username="admin", email="admin@example.com", admin=True)

    def _headers(self, user):
        return mock_token_generator.authorization_header(user)

    def _call(self, client, method, url, body=None, headers=None):
        return client.request(method, url, json=body, headers=headers or {})

    # Ambient endpoints

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "gateway"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"users": "configured", "mehms": "configured"}

    def test_metrics_endpoint(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_metrics_are_labelled_by_route_name(self, app, client, user):
        client.get("/api/mehms/7", headers=self._headers(user))
        client.get("/api/mehms/0", headers=self._headers(user))

        registry = app.state.gateway_service.metrics.registry
        assert registry.get_sample_value(
            "http_requests_total", {"method": "GET", "route": "get_mehm", "status_code": "200"}
        ) == 1.0
        assert registry.get_sample_value(
            "errors_total", {"code": "VALIDATION_FAILED", "route": "get_mehm"}
        ) == 1.0
        assert registry.get_sample_value(
            "upstream_requests_total", {"backend": "mehms", "status_code": "200"}
        ) == 1.0

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"message": "not found"}

    def test_request_id_header(self, client, user):
        response = client.get("/api/user", headers={**self._headers(user), "X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_cors_allows_authorization_header(self, client):
        response = client.options(
            "/api/mehms",
            headers={
                "Origin": "http://frontend.test",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Authorization",
            },
        )

        assert response.status_code == 200
        assert "authorization" in response.headers["access-control-allow-headers"].lower()

    # Authentication and authorization short-circuits

    @pytest.mark.parametrize("method, url, body", ROUTE_CALLS)
    @pytest.mark.parametrize(
        "authorization, message",
        [
            (None, "unauthenticated"),
            ("Token abc", "invalid credential format"),
            ("Bearer a Bearer b", "invalid credential format"),
            ("Bearer ", "invalid credentials"),
            ("Bearer not-a-token", "invalid credentials"),
        ],
    )
    def test_bad_credentials_never_reach_backend(self, client, backend, method, url, body, authorization, message):
        """Every route answers 401 before any outbound call."""
        headers = {"Authorization": authorization} if authorization is not None else {}

        response = self._call(client, method, url, body, headers)

        assert response.status_code == 401
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"message": message}
        assert backend.requests == []

    def test_expired_token(self, client, backend, user):
        headers = mock_token_generator.authorization_header(user, expires_in=-30)

        response = client.get("/api/mehms", headers=headers)

        assert response.status_code == 401
        assert backend.requests == []

    @pytest.mark.parametrize("method, url, body", ADMIN_ONLY_CALLS)
    def test_admin_only_routes_forbid_regular_users(self, client, backend, user, method, url, body):
        response = self._call(client, method, url, body, self._headers(user))

        assert response.status_code == 403
        assert response.json() == {"message": "admin-only"}
        assert backend.requests == []

    def test_admin_only_check_precedes_validation(self, client, backend, user):
        response = client.get("/api/user/elevate?id=abc", headers=self._headers(user))

        assert response.status_code == 403

    @pytest.mark.parametrize("method, url, body", ROUTE_CALLS)
    def test_every_route_succeeds_for_admin(self, client, backend, admin, method, url, body):
        response = self._call(client, method, url, body, self._headers(admin))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"

    # Mehm routes

    def test_list_mehms_relays_body_verbatim(self, client, backend, user):
        """A 200 backend body reaches the caller byte for byte."""
        backend.body = b'{"1":{"id":1,"title":"Segfault","likes":3}}'

        response = client.get("/api/mehms?skip=0&take=10", headers=self._headers(user))

        assert response.status_code == 200
        assert response.content == b'{"1":{"id":1,"title":"Segfault","likes":3}}'
        assert response.headers["content-type"] == "application/json"
        assert backend.last.method == "GET"
        assert backend.last.url == f"{MEHMS_HOST}/mehms"
        assert backend.last.params == {"skip": "0", "take": "10"}

    def test_list_mehms_forwards_filters(self, client, backend, user):
        response = client.get(
            "/api/mehms?textSearch=cat&genre=DHBW&sort=likes&unknown=1",
            headers=self._headers(user),
        )

        assert response.status_code == 200
        assert backend.last.params == {"textSearch": "cat", "genre": "DHBW", "sort": "likes"}

    def test_list_mehms_empty_genre_is_allowed(self, client, backend, user):
        response = client.get("/api/mehms?genre=", headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.params == {"genre": ""}

    @pytest.mark.parametrize("take, status", [("1", 200), ("30", 200), ("31", 400), ("0", 400)])
    def test_list_mehms_take_bounds(self, client, backend, user, take, status):
        response = client.get(f"/api/mehms?take={take}", headers=self._headers(user))

        assert response.status_code == status
        assert len(backend.requests) == (1 if status == 200 else 0)

    @pytest.mark.parametrize(
        "query",
        ["genre=MEMES", "skip=-1", "skip=abc", "sort=title", "textSearch=" + "x" * 33],
    )
    def test_list_mehms_rejects_bad_query(self, client, backend, user, query):
        response = client.get(f"/api/mehms?{query}", headers=self._headers(user))

        assert response.status_code == 400
        assert "message" in response.json()
        assert backend.requests == []

    def test_invalid_genre_message(self, client, user):
        response = client.get("/api/mehms?genre=MEMES", headers=self._headers(user))

        assert "invalid genre MEMES" in response.json()["message"]

    def test_get_mehm_passes_caller_id(self, client, backend, user):
        response = client.get("/api/mehms/7", headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.url == f"{MEHMS_HOST}/mehms/get/7"
        assert backend.last.params == {"userId": "user1"}

    @pytest.mark.parametrize("mehm_id", ["0", "abc", "-3"])
    def test_get_mehm_rejects_bad_id(self, client, backend, user, mehm_id):
        response = client.get(f"/api/mehms/{mehm_id}", headers=self._headers(user))

        assert response.status_code == 400
        assert backend.requests == []

    def test_like_mehm(self, client, backend, user):
        response = client.post("/api/mehms/7/like", headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.method == "POST"
        assert backend.last.url == f"{MEHMS_HOST}/mehms/7/like"
        assert backend.last.params == {"userId": "user1"}

    def test_remove_mehm_passes_admin_flag(self, client, backend, user, admin):
        client.post("/api/mehms/7/remove", headers=self._headers(user))
        assert backend.last.url == f"{MEHMS_HOST}/mehms/7/remove"
        assert backend.last.params == {"userId": "user1", "isAdmin": "false"}

        client.post("/api/mehms/7/remove", headers=self._headers(admin))
        assert backend.last.params == {"userId": "admin", "isAdmin": "true"}

    @pytest.mark.parametrize(
        "url, params",
        [
            ("/api/mehms/7/like", {"userId": "user1"}),
            ("/api/mehms/7/remove", {"userId": "user1", "isAdmin": "false"}),
            ("/api/comments/remove?commentId=5", {"commentId": "5", "userId": "user1", "isAdmin": "false"}),
        ],
    )
    def test_client_body_never_reaches_ownership_checks(self, client, backend, user, url, params):
        """Caller fields in an inbound body cannot override the token's identity."""
        response = client.post(
            url,
            json={"userId": "admin", "isAdmin": True},
            headers=self._headers(user),
        )

        assert response.status_code == 200
        assert backend.last.params == params
        assert backend.last.body == b""

    def test_update_mehm_reencodes_body(self, client, backend, admin):
        response = client.post(
            "/api/mehms/5/update",
            json={"title": "New", "description": "Better", "userId": "user1", "isAdmin": False},
            headers=self._headers(admin),
        )

        assert response.status_code == 200
        assert backend.last.url == f"{MEHMS_HOST}/mehms/5/update"
        assert backend.last.params == {"userId": "admin", "isAdmin": "true"}
        assert backend.last.json() == {"description": "Better", "title": "New", "userId": "admin", "isAdmin": True}

    @pytest.mark.parametrize(
        "body",
        [
            {"title": "t" * 33, "description": "d"},
            {"title": "t", "description": "d" * 129},
            {"title": "t"},
        ],
    )
    def test_update_mehm_validates_body(self, client, backend, admin, body):
        response = client.post("/api/mehms/5/update", json=body, headers=self._headers(admin))

        assert response.status_code == 422
        assert backend.requests == []

    def test_update_mehm_rejects_non_json(self, client, backend, admin):
        response = client.post("/api/mehms/5/update", content=b"title=x", headers=self._headers(admin))

        assert response.status_code == 422
        assert backend.requests == []

    # User routes

    def test_profile_echoes_identity(self, client, backend, user):
        response = client.get("/api/user", headers=self._headers(user))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {
            "id": "user1",
            "username": "john.doe",
            "email": "john.doe@example.com",
            "isAdmin": False,
        }
        assert backend.requests == []

    def test_all_users(self, client, backend, admin):
        backend.body = b'[{"id":"user1"}]'

        response = client.get("/api/user/all", headers=self._headers(admin))

        assert response.status_code == 200
        assert response.content == b'[{"id":"user1"}]'
        assert backend.last.url == f"{USERS_HOST}/all"

    def test_toggle_elevation(self, client, backend, admin):
        response = client.get("/api/user/elevate?id=12", headers=self._headers(admin))

        assert response.status_code == 200
        assert backend.last.method == "GET"
        assert backend.last.url == f"{USERS_HOST}/elevate"
        assert backend.last.params == {"id": "12"}

    @pytest.mark.parametrize("query", ["", "?id=0", "?id=abc"])
    def test_toggle_elevation_requires_valid_id(self, client, backend, admin, query):
        response = client.get(f"/api/user/elevate{query}", headers=self._headers(admin))

        assert response.status_code == 400
        assert backend.requests == []

    def test_delete_self(self, client, backend, user):
        response = client.post("/api/user/delete", json={"id": "user1"}, headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.method == "POST"
        assert backend.last.url == f"{USERS_HOST}/delete"
        assert backend.last.params == {"id": "user1"}

    def test_delete_other_user_forbidden(self, client, backend, user):
        response = client.post("/api/user/delete", json={"id": "user2"}, headers=self._headers(user))

        assert response.status_code == 403
        assert backend.requests == []

    def test_admin_deletes_other_user(self, client, backend, admin):
        response = client.post("/api/user/delete", json={"id": "user2"}, headers=self._headers(admin))

        assert response.status_code == 200
        assert backend.last.params == {"id": "user2"}

    @pytest.mark.parametrize("raw", [b"", b"{", b'{"id": 5}', b'{"id": ""}'])
    def test_delete_user_bad_body(self, client, backend, user, raw):
        response = client.post("/api/user/delete", content=raw, headers=self._headers(user))

        assert response.status_code == 422
        assert backend.requests == []

    # Comment routes

    def test_get_comment(self, client, backend, user):
        response = client.get("/api/comments/3", headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.method == "GET"
        assert backend.last.url == f"{MEHMS_HOST}/comments/get/3"
        assert backend.last.params == {}

    def test_post_comment(self, client, backend, user):
        response = client.post(
            "/api/comments/new",
            json={"mehmId": 1, "comment": "nice"},
            headers=self._headers(user),
        )

        assert response.status_code == 200
        assert backend.last.url == f"{MEHMS_HOST}/comments/new"
        assert backend.last.params == {"userId": "user1"}
        assert backend.last.json() == {"mehmId": 1, "comment": "nice", "userId": "user1", "isAdmin": False}

    def test_post_comment_overwrites_spoofed_identity(self, client, backend, user):
        response = client.post(
            "/api/comments/new",
            json={"mehmId": 1, "comment": "nice", "userId": "admin", "isAdmin": True},
            headers=self._headers(user),
        )

        assert response.status_code == 200
        assert backend.last.json()["userId"] == "user1"
        assert backend.last.json()["isAdmin"] is False

    def test_post_comment_rejects_mehm_id_zero(self, client, backend, user):
        response = client.post(
            "/api/comments/new",
            json={"mehmId": 0, "comment": "hi"},
            headers=self._headers(user),
        )

        assert response.status_code == 400
        assert "message" in response.json()
        assert backend.requests == []

    @pytest.mark.parametrize("length, status", [(256, 200), (257, 422)])
    def test_post_comment_length_boundary(self, client, backend, user, length, status):
        response = client.post(
            "/api/comments/new",
            json={"mehmId": 1, "comment": "c" * length},
            headers=self._headers(user),
        )

        assert response.status_code == status

    def test_post_comment_from_query(self, client, backend, user):
        response = client.post("/api/comments/new?mehmId=3&comment=hi", headers=self._headers(user))

        assert response.status_code == 200
        assert backend.last.json() == {"mehmId": 3, "comment": "hi", "userId": "user1", "isAdmin": False}

    def test_post_comment_query_errors_are_bad_requests(self, client, backend, user):
        response = client.post("/api/comments/new?mehmId=x&comment=hi", headers=self._headers(user))

        assert response.status_code == 400
        assert backend.requests == []

    def test_edit_comment(self, client, backend, user):
        response = client.post(
            "/api/comments/update",
            json={"id": 4, "comment": "edited"},
            headers=self._headers(user),
        )

        assert response.status_code == 200
        assert backend.last.url == f"{MEHMS_HOST}/comments/update"
        assert backend.last.params == {"userId": "user1", "isAdmin": "false"}
        assert backend.last.json() == {"id": 4, "comment": "edited", "userId": "user1", "isAdmin": False}

    def test_edit_comment_rejects_garbage(self, client, backend, user):
        response = client.post("/api/comments/update", content=b"nope", headers=self._headers(user))

        assert response.status_code == 422
        assert backend.requests == []

    def test_remove_comment(self, client, backend, admin):
        response = client.post("/api/comments/remove?commentId=5", headers=self._headers(admin))

        assert response.status_code == 200
        assert backend.last.url == f"{MEHMS_HOST}/comments/remove"
        assert backend.last.params == {"commentId": "5", "userId": "admin", "isAdmin": "true"}

    @pytest.mark.parametrize("query", ["", "?commentId=0", "?commentId=x"])
    def test_remove_comment_requires_valid_id(self, client, backend, user, query):
        response = client.post(f"/api/comments/remove{query}", headers=self._headers(user))

        assert response.status_code == 400
        assert backend.requests == []

    # Backend outcomes

    @pytest.mark.parametrize("status", [400, 403, 404, 500])
    def test_backend_errors_pass_through(self, client, backend, user, status):
        backend.status_code = status
        backend.body = b'{"message":"from the mehm service"}'

        response = client.post("/api/mehms/1/like", headers=self._headers(user))

        assert response.status_code == status
        assert response.content == b'{"message":"from the mehm service"}'
        assert response.headers["content-type"] == "application/json"

    def test_unexpected_failure_is_internal_error(self, app, user):
        client = TestClient(app, raise_server_exceptions=False)
        service = app.state.gateway_service

        with patch.object(service.authenticator, "authenticate", side_effect=RuntimeError("boom")):
            response = client.get("/api/user", headers=self._headers(user))

        assert response.status_code == 500
        assert response.json() == {"message": "internal server error"}

    def test_unreachable_backend_is_bad_gateway(self, client, backend, user):
        backend.handler = unreachable

        response = client.get("/api/mehms?skip=0&take=10", headers=self._headers(user))

        assert response.status_code == 502
        assert response.headers["content-type"] == "application/json"
        assert response.json()["message"].startswith("mehms:")
        assert len(backend.requests) == 1


class TestGatewayConfiguration:
    """Startup behaviour around configuration."""

    def test_missing_configuration_fails_at_startup(self, monkeypatch, tmp_path):
        from shared.errors import ConfigurationError

        monkeypatch.chdir(tmp_path)
        for name in ("USERS_HOST", "MEHMS_HOST", "SECRET_KEY"):
            monkeypatch.delenv(name, raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            create_app()

        assert "SECRET_KEY" in exc_info.value.message
        assert "USERS_HOST" in exc_info.value.message

    def test_configuration_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("USERS_HOST", "http://users.internal:8081")
        monkeypatch.setenv("MEHMS_HOST", "http://mehms.internal:8082")
        monkeypatch.setenv("SECRET_KEY", "env-secret")
        monkeypatch.setenv("PORT", "4200")

        app = create_app()
        service = app.state.gateway_service

        assert service.port == 4200
        assert service.upstream_client.base_urls == {
            "users": "http://users.internal:8081",
            "mehms": "http://mehms.internal:8082",
        }
