from __future__ import annotations

import asyncio
from concurrent.futures import Future
import logging
import threading
from typing import Any, Coroutine, TypeVar

from bookshelf_client.apis import AuthApi
from bookshelf_client.config import AppSettings
from bookshelf_client.http import HttpClient
from bookshelf_client.lifecycle import ForegroundRevalidator
from bookshelf_client.models import AuthState
from bookshelf_client.navigation import NavigationBinder, Navigator
from bookshelf_client.session import SessionManager
from bookshelf_client.storage import CredentialStore, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncRunner:
    """Owns an event loop running on a daemon thread.

    GUI code hands coroutines to ``submit`` and gets a concurrent future back.
    """

    def __init__(self):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="bookshelf-loop", daemon=True)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def submit(self, coroutine: Coroutine[Any, Any, T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(coroutine, self._loop)

    def stop(self, timeout: float = 2.0) -> None:
        if not self._thread.is_alive():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()


class BookshelfService:
    def __init__(
        self,
        settings: AppSettings,
        store: CredentialStore,
        http_client: HttpClient,
        auth_api: AuthApi,
        session: SessionManager,
    ):
        self._settings = settings
        self._store = store
        self._http_client = http_client
        self._auth_api = auth_api
        self._session = session
        self._binder: NavigationBinder | None = None

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def http_client(self) -> HttpClient:
        return self._http_client

    @property
    def request_timeout_seconds(self) -> float:
        return self._settings.timeout_seconds

    def auth_state(self) -> AuthState:
        return self._session.snapshot()

    def attach_navigator(self, navigator: Navigator) -> NavigationBinder:
        if self._binder is not None:
            self._binder.unbind()
        self._binder = NavigationBinder(self._session, navigator)
        self._binder.bind()
        self._binder.sync()
        return self._binder

    def foreground_revalidator(self, loop: asyncio.AbstractEventLoop | None = None) -> ForegroundRevalidator:
        return ForegroundRevalidator(self._session, loop=loop)

    async def start(self) -> AuthState:
        await self._session.bootstrap()
        return self.auth_state()

    async def sign_in(self, email: str, password: str) -> AuthState:
        await self._session.login(email, password)
        return self.auth_state()

    async def sign_up(self, name: str, email: str, password: str) -> dict[str, Any] | None:
        return await self._session.register(name, email, password)

    async def sign_out(self) -> None:
        await self._session.logout()

    async def revalidate(self) -> AuthState:
        await self._session.revalidate()
        return self.auth_state()

    async def effective_host(self) -> str:
        try:
            host = await self._store.get_host()
        except StorageError as exc:
            logger.warning("Could not read host override: %s", exc)
            host = None
        return host or self._settings.api_base_url

    async def save_host(self, host: str) -> None:
        value = host.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("Host must start with http:// or https://")
        await self._store.set_host(value)
        logger.info("API host set to %s", value)

    async def clear_host(self) -> None:
        await self._store.remove_host()
        logger.info("API host reset to %s", self._settings.api_base_url)

    async def check_server(self, host: str) -> bool:
        return await self._auth_api.ping(host)

    def close(self) -> None:
        if self._binder is not None:
            self._binder.unbind()
        self._http_client.close()


def build_service(settings: AppSettings) -> BookshelfService:
    store = CredentialStore(settings.storage_path)
    http_client = HttpClient(settings, store)
    auth_api = AuthApi(settings, http_client)
    session = SessionManager(store, auth_api, settings)
    http_client.error_interceptors.append(session.handle_api_error)
    return BookshelfService(
        settings=settings,
        store=store,
        http_client=http_client,
        auth_api=auth_api,
        session=session,
    )
