from __future__ import annotations

from typing import Any

from bookshelf_client.config import AppSettings
from bookshelf_client.http import ApiHttpError, HttpClient


class AuthApi:
    def __init__(self, settings: AppSettings, http_client: HttpClient):
        self._settings = settings
        self._http_client = http_client

    async def login(self, email: str, password: str) -> str:
        result = await self._http_client.post_json(
            self._settings.login_path,
            {"email": email, "password": password},
        )
        token = ""
        if isinstance(result, dict):
            token = str(result.get("access_token") or "").strip()
        if not token:
            raise RuntimeError("Login response did not contain an access token")
        return token

    async def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        result = await self._http_client.post_json(
            self._settings.register_path,
            {"name": name, "email": email, "password": password},
        )
        if not isinstance(result, dict):
            return {"value": result}
        return result

    async def me(self) -> dict[str, Any]:
        result = await self._http_client.get_json(self._settings.me_path)
        if not isinstance(result, dict):
            return {"value": result}
        return result

    async def status(self) -> bool:
        result = await self._http_client.get_json(self._settings.status_path)
        if not isinstance(result, dict):
            return False
        return result.get("isAuthenticated") is True

    async def ping(self, host: str) -> bool:
        base = host.strip().rstrip("/")
        if not base.startswith(("http://", "https://")):
            return False
        try:
            result = await self._http_client.get_absolute_json(
                f"{base}{self._settings.ping_path}",
                intercept=False,
            )
        except ApiHttpError:
            return False
        return isinstance(result, dict) and result.get("pong") is True
