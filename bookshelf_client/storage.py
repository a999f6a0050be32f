"""
Durable key/value storage for the session credential and the API host override.

Values live in a single JSON document persisted through msal-extensions'
``FilePersistence``, so they survive process restarts. Every operation is a
coroutine; file I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

from msal_extensions import FilePersistence
from msal_extensions.persistence import PersistenceNotFound

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
HOST_KEY = "host"


class StorageError(RuntimeError):
    """The backing file could not be read or written."""


class CredentialStore:
    def __init__(self, path: str):
        self._persistence = self._build_persistence(path)
        self._lock = asyncio.Lock()

    @staticmethod
    def _build_persistence(path: str) -> FilePersistence:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return FilePersistence(path)

    @property
    def location(self) -> str:
        return self._persistence.get_location()

    async def get(self, key: str) -> str | None:
        values = await asyncio.to_thread(self._read_all)
        value = values.get(key)
        if value is None:
            return None
        return str(value)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            values = await asyncio.to_thread(self._read_all)
            values[key] = value
            await asyncio.to_thread(self._write_all, values)
        logger.debug("Stored key %s", key)

    async def remove(self, key: str) -> None:
        async with self._lock:
            values = await asyncio.to_thread(self._read_all)
            if key not in values:
                return
            del values[key]
            await asyncio.to_thread(self._write_all, values)
        logger.debug("Removed key %s", key)

    async def get_token(self) -> str | None:
        return await self.get(ACCESS_TOKEN_KEY)

    async def set_token(self, token: str) -> None:
        await self.set(ACCESS_TOKEN_KEY, token)

    async def remove_token(self) -> None:
        await self.remove(ACCESS_TOKEN_KEY)

    async def get_host(self) -> str | None:
        host = await self.get(HOST_KEY)
        if host is None or not host.strip():
            return None
        return host.strip().rstrip("/")

    async def set_host(self, host: str) -> None:
        await self.set(HOST_KEY, host.strip().rstrip("/"))

    async def remove_host(self) -> None:
        await self.remove(HOST_KEY)

    def _read_all(self) -> dict[str, Any]:
        try:
            raw = self._persistence.load()
        except PersistenceNotFound:
            return {}
        except OSError as exc:
            raise StorageError(f"Could not read {self.location}: {exc}") from exc

        if not raw or not raw.strip():
            return {}

        try:
            values = json.loads(raw)
        except ValueError as exc:
            raise StorageError(f"Corrupt storage document at {self.location}") from exc
        if not isinstance(values, dict):
            raise StorageError(f"Corrupt storage document at {self.location}")
        return values

    def _write_all(self, values: dict[str, Any]) -> None:
        try:
            self._persistence.save(json.dumps(values))
        except OSError as exc:
            raise StorageError(f"Could not write {self.location}: {exc}") from exc
