"""
Session state machine.

``SessionManager`` is the single owner of the authentication state. Every
transition funnels through ``_commit``, which holds a lock while the store is
updated so that a transition becomes visible only once its persistence side
effect has resolved.

Credential changes (a successful login, logout, an inbound 401) bump an epoch
counter. Operations remember the epoch they started under, and their result
is dropped if the epoch moved on in the meantime; logout and 401 handling
never check it. A late success from an older request therefore cannot bring a
session back after the server rejected it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from bookshelf_client.apis import AuthApi
from bookshelf_client.config import AppSettings
from bookshelf_client.http import ApiCall, ApiHttpError, UnauthorizedError, is_transient_error
from bookshelf_client.models import AuthState, SessionState
from bookshelf_client.retry import retry_async
from bookshelf_client.storage import CredentialStore, StorageError

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed. Please try again."
REGISTRATION_FAILED_MESSAGE = "Registration failed. Please try again."
UNKNOWN_ERROR_MESSAGE = "Unknown error. Please try again."
SESSION_CHANGED_MESSAGE = "Session changed, please sign in again."

StateListener = Callable[[SessionState, SessionState], None]

_KEEP = object()


class SessionManager:
    def __init__(self, store: CredentialStore, auth_api: AuthApi, settings: AppSettings):
        self._store = store
        self._auth_api = auth_api
        self._settings = settings
        self._state = SessionState.LOADING
        self._error: str | None = None
        self._epoch = 0
        self._commit_lock = asyncio.Lock()
        self._bootstrap_task: asyncio.Task[None] | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._state is SessionState.LOADING

    @property
    def is_logged_in(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def snapshot(self) -> AuthState:
        return AuthState(state=self._state, error=self._error)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def bootstrap(self) -> None:
        if self._bootstrap_task is None:
            if self._state is not SessionState.LOADING:
                return
            self._bootstrap_task = asyncio.ensure_future(self._run_bootstrap())
        await asyncio.shield(self._bootstrap_task)

    async def _run_bootstrap(self) -> None:
        epoch = self._epoch
        try:
            token = await self._store.get_token()
        except StorageError as exc:
            logger.warning("Could not read stored credential, probing session instead: %s", exc)
            token = None

        if token:
            # Trust the stored token; a server-side revocation surfaces as a 401 later.
            logger.info("Restored session from stored credential")
            await self._commit(SessionState.AUTHENTICATED, epoch=epoch)
            return

        try:
            await retry_async(
                self._auth_api.me,
                attempts=self._settings.retry_attempts,
                delay_seconds=self._settings.retry_delay_seconds,
                retry_if=is_transient_error,
            )
        except Exception as exc:
            logger.info("Session check failed: %s", exc)
            await self._commit(SessionState.UNAUTHENTICATED, epoch=epoch)
            return

        await self._commit(SessionState.AUTHENTICATED, epoch=epoch)

    async def login(self, email: str, password: str) -> bool:
        """Exchange credentials for a token.

        Never raises. On failure ``error`` holds a message suitable for display
        and the state is ``UNAUTHENTICATED``.
        """
        self._error = None
        epoch = self._epoch
        try:
            token = await retry_async(
                lambda: self._auth_api.login(email, password),
                attempts=self._settings.retry_attempts,
                delay_seconds=self._settings.retry_delay_seconds,
                retry_if=is_transient_error,
            )
        except Exception as exc:
            logger.info("Login failed for %s: %s", email, exc)
            self._error = _describe_failure(exc, LOGIN_FAILED_MESSAGE)
            await self._commit(SessionState.UNAUTHENTICATED, epoch=epoch)
            return False

        try:
            committed = await self._commit(SessionState.AUTHENTICATED, epoch=epoch, token=token)
        except StorageError as exc:
            logger.error("Could not persist credential: %s", exc)
            self._error = UNKNOWN_ERROR_MESSAGE
            await self._commit(SessionState.UNAUTHENTICATED, epoch=epoch)
            return False

        if not committed:
            logger.info("Discarding login result, session changed while it was in flight")
            self._error = SESSION_CHANGED_MESSAGE
            return False

        self._error = None
        logger.info("Signed in as %s", email)
        return True

    async def register(self, name: str, email: str, password: str) -> dict[str, Any] | None:
        self._error = None
        try:
            user = await self._auth_api.register(name, email, password)
        except Exception as exc:
            logger.info("Registration failed for %s: %s", email, exc)
            self._error = _describe_failure(exc, REGISTRATION_FAILED_MESSAGE)
            return None
        logger.info("Registered account for %s", email)
        return user

    async def logout(self) -> None:
        await self._commit(SessionState.UNAUTHENTICATED, invalidate=True)
        logger.info("Signed out")

    async def revalidate(self) -> None:
        epoch = self._epoch
        try:
            is_authenticated = await self._auth_api.status()
        except Exception as exc:
            logger.info("Session revalidation failed, treating as signed out: %s", exc)
            is_authenticated = False

        target = SessionState.AUTHENTICATED if is_authenticated else SessionState.UNAUTHENTICATED
        await self._commit(target, epoch=epoch)

    async def handle_api_error(self, call: ApiCall, error: ApiHttpError) -> None:
        if not isinstance(error, UnauthorizedError):
            return
        logger.warning("%s %s was rejected with 401, ending session", call.method, call.url)
        await self._commit(SessionState.UNAUTHENTICATED, invalidate=True)

    async def _commit(
        self,
        target: SessionState,
        epoch: int | None = None,
        token: Any = _KEEP,
        invalidate: bool = False,
    ) -> bool:
        async with self._commit_lock:
            if epoch is not None and epoch != self._epoch:
                logger.debug("Dropping stale %s transition (epoch %s, now %s)", target.value, epoch, self._epoch)
                return False

            if target is SessionState.AUTHENTICATED:
                if token is not _KEEP:
                    await self._store.set_token(token)
                    self._epoch += 1
            else:
                try:
                    await self._store.remove_token()
                except StorageError as exc:
                    logger.error("Could not remove stored credential: %s", exc)
                if invalidate:
                    self._epoch += 1

            self._set_state(target)
            return True

    def _set_state(self, target: SessionState) -> None:
        previous = self._state
        self._state = target
        if previous is target:
            return
        logger.debug("Session state %s -> %s", previous.value, target.value)
        for listener in list(self._listeners):
            try:
                listener(previous, target)
            except Exception:
                logger.exception("Session state listener failed")


def _describe_failure(error: BaseException, fallback: str) -> str:
    if isinstance(error, ApiHttpError) and error.status_code:
        return error.server_message or fallback
    return UNKNOWN_ERROR_MESSAGE
