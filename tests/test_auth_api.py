"""
Tests for the authentication endpoint wrappers.
"""

from unittest.mock import AsyncMock

import pytest

from bookshelf_client.apis import AuthApi
from bookshelf_client.http import HttpClient, NetworkError


@pytest.fixture
def http_client():
    return AsyncMock(spec=HttpClient)


@pytest.fixture
def api(settings, http_client):
    return AuthApi(settings, http_client)


@pytest.mark.asyncio
async def test_login_posts_credentials_and_returns_token(api, http_client):
    http_client.post_json.return_value = {"access_token": "tok123"}

    token = await api.login("user@example.com", "secret1")

    assert token == "tok123"
    http_client.post_json.assert_awaited_once_with(
        "/auth/login",
        {"email": "user@example.com", "password": "secret1"},
    )


@pytest.mark.asyncio
async def test_login_without_token_in_body_fails(api, http_client):
    http_client.post_json.return_value = {"user": {}}

    with pytest.raises(RuntimeError, match="access token"):
        await api.login("user@example.com", "secret1")


@pytest.mark.asyncio
async def test_register_posts_to_users_endpoint(api, http_client):
    http_client.post_json.return_value = {"id": 3, "name": "Ana"}

    user = await api.register("Ana", "ana@example.com", "secret1")

    assert user == {"id": 3, "name": "Ana"}
    http_client.post_json.assert_awaited_once_with(
        "/usuarios",
        {"name": "Ana", "email": "ana@example.com", "password": "secret1"},
    )


@pytest.mark.asyncio
async def test_me_hits_me_endpoint(api, http_client):
    http_client.get_json.return_value = {"id": 1}

    assert await api.me() == {"id": 1}
    http_client.get_json.assert_awaited_once_with("/me")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"isAuthenticated": True}, True),
        ({"isAuthenticated": False}, False),
        ({"isAuthenticated": "yes"}, False),
        ({}, False),
        ([], False),
    ],
)
async def test_status_reads_boolean_flag(api, http_client, payload, expected):
    http_client.get_json.return_value = payload

    assert await api.status() is expected
    http_client.get_json.assert_awaited_once_with("/auth/status")


@pytest.mark.asyncio
async def test_ping_bypasses_interceptors(api, http_client):
    http_client.get_absolute_json.return_value = {"pong": True}

    assert await api.ping("http://192.168.1.23:3000/") is True
    http_client.get_absolute_json.assert_awaited_once_with(
        "http://192.168.1.23:3000/auth/ping",
        intercept=False,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"pong": False},
        {"pong": "true"},
        {"status": "ok"},
        {},
        ["pong"],
    ],
)
async def test_ping_requires_pong_true(api, http_client, payload):
    http_client.get_absolute_json.return_value = payload

    assert await api.ping("http://192.168.1.23:3000") is False


@pytest.mark.asyncio
async def test_ping_reports_unreachable_host(api, http_client):
    http_client.get_absolute_json.side_effect = NetworkError("refused")

    assert await api.ping("http://10.0.0.1:3000") is False


@pytest.mark.asyncio
async def test_ping_rejects_non_http_host(api, http_client):
    assert await api.ping("192.168.1.23:3000") is False
    http_client.get_absolute_json.assert_not_awaited()
