import asyncio
import os
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from salesforms.config import get_settings
from salesforms.exceptions import UpstreamStorageError
from salesforms.main import app
from salesforms.middleware import auth
from salesforms.services.form_service import get_form_service


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "API is running"
    assert "timestamp" in body


def test_unknown_api_route(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route not found: GET /api/nothing-here"}


def test_requires_authentication(anonymous_client):
    response = anonymous_client.get("/api/forms")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authorized to access this route"}


def test_storage_failure_is_a_500(client):
    failing = MagicMock()
    failing.list_forms.side_effect = UpstreamStorageError()
    app.dependency_overrides[get_form_service] = lambda: failing

    response = client.get("/api/forms")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Database error"}


def test_unhandled_error_is_a_json_500(client):
    failing = MagicMock()
    failing.list_forms.side_effect = RuntimeError("kaboom")
    app.dependency_overrides[get_form_service] = lambda: failing

    response = client.get("/api/forms")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Server Error"
    assert "kaboom" in body["stack"]


def test_uploads_are_served(client):

    path = os.path.join(get_settings().file_upload_path, "served.png")
    with open(path, "wb") as f:
        f.write(b"png-bytes")

    response = client.get("/uploads/served.png")

    assert response.status_code == 200
    assert response.content == b"png-bytes"


@pytest.fixture
def auth_api(monkeypatch):
    """Route the auth module's httpx client to a canned Supabase Auth handler"""
    calls = []
    real_client = httpx.AsyncClient

    def install(status_code, payload=None, content=None):
        def handler(request):
            calls.append(request)
            if content is not None:
                return httpx.Response(status_code, content=content)
            return httpx.Response(status_code, json=payload)

        def factory(*args, **kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(auth.httpx, "AsyncClient", factory)
        return calls

    return install


def credentials(token="token-123"):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_verify_token(auth_api):
    calls = auth_api(200, {"id": "user-1", "email": "rep@example.com", "role": "authenticated"})

    user = asyncio.run(auth.verify_token(credentials()))

    assert user["user_id"] == "user-1"
    assert user["email"] == "rep@example.com"
    assert calls[0].url.path == "/auth/v1/user"
    assert calls[0].headers["Authorization"] == "Bearer token-123"
    assert calls[0].headers["apikey"] == get_settings().supabase_anon_key


def test_verify_token_rejected(auth_api):
    auth_api(401, {"msg": "invalid JWT"})

    with pytest.raises(HTTPException) as exc:
        asyncio.run(auth.verify_token(credentials()))

    assert exc.value.status_code == 401


def test_verify_token_without_credentials():
    assert asyncio.run(auth.verify_token(None)) is None

    with pytest.raises(HTTPException) as exc:
        asyncio.run(auth.get_current_user(None))

    assert exc.value.status_code == 401


@pytest.mark.parametrize("install_args", [
    {"content": b"<html>gateway</html>"},
    {"payload": ["not", "an", "object"]},
    {"payload": {"email": "rep@example.com"}},
])
def test_verify_token_unreadable_user(auth_api, install_args):
    auth_api(200, **install_args)

    with pytest.raises(HTTPException) as exc:
        asyncio.run(auth.verify_token(credentials()))

    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid authentication token"
