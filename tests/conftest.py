import json
from unittest.mock import AsyncMock

import pytest
import requests

from bookshelf_client.apis import AuthApi
from bookshelf_client.config import AppSettings
from bookshelf_client.session import SessionManager
from bookshelf_client.storage import CredentialStore


def make_response(status_code: int, payload=None) -> requests.Response:
    """Build a real requests.Response carrying a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return response


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        api_base_url="http://api.test",
        storage_path=str(tmp_path / "store" / "session.json"),
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def store(settings):
    return CredentialStore(settings.storage_path)


@pytest.fixture
def auth_api():
    return AsyncMock(spec=AuthApi)


@pytest.fixture
def session(store, auth_api, settings):
    return SessionManager(store, auth_api, settings)
