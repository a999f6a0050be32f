from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
import logging
from typing import Any, Awaitable, Callable

import requests

from bookshelf_client.config import AppSettings
from bookshelf_client.logging_utils import redact_headers
from bookshelf_client.storage import CredentialStore, StorageError

logger = logging.getLogger(__name__)


class ApiHttpError(RuntimeError):
    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def server_message(self) -> str | None:
        """The ``message`` field of the error body, flattened to one string."""
        if not isinstance(self.payload, dict):
            return None
        message = self.payload.get("message")
        if isinstance(message, list):
            parts = [str(part).strip() for part in message if str(part).strip()]
            return "; ".join(parts) or None
        if message is None:
            return None
        return str(message).strip() or None


class NetworkError(ApiHttpError):
    def __init__(self, message: str):
        super().__init__(status_code=0, message=message)


class RequestTimeoutError(ApiHttpError):
    def __init__(self, message: str):
        super().__init__(status_code=0, message=message)


class UnauthorizedError(ApiHttpError):
    pass


class ApiValidationError(ApiHttpError):
    @property
    def messages(self) -> list[str]:
        if not isinstance(self.payload, dict):
            return []
        message = self.payload.get("message")
        if isinstance(message, list):
            return [str(part) for part in message]
        if message:
            return [str(message)]
        return []


@dataclass
class ApiCall:
    method: str
    path: str
    base_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    params: dict[str, Any] | None = None

    @property
    def is_absolute(self) -> bool:
        return self.path.startswith(("http://", "https://"))

    @property
    def url(self) -> str:
        if self.is_absolute:
            return self.path
        return f"{self.base_url}{self.path}"


@dataclass(frozen=True)
class ApiResponse:
    call: ApiCall
    status_code: int
    payload: Any


RequestInterceptor = Callable[[ApiCall], Awaitable[ApiCall]]
ResponseInterceptor = Callable[[ApiResponse], Awaitable[None]]
ErrorInterceptor = Callable[[ApiCall, ApiHttpError], Awaitable[None]]


class HttpClient:
    def __init__(self, settings: AppSettings, store: CredentialStore):
        self._settings = settings
        self._store = store
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        self.request_interceptors: list[RequestInterceptor] = [
            self.resolve_host,
            self.attach_bearer,
            log_request,
        ]
        self.response_interceptors: list[ResponseInterceptor] = [log_response]
        self.error_interceptors: list[ErrorInterceptor] = [log_error]

    @property
    def timeout_seconds(self) -> float:
        return self._settings.timeout_seconds

    async def resolve_host(self, call: ApiCall) -> ApiCall:
        if call.is_absolute:
            return call
        try:
            host = await self._store.get_host()
        except StorageError as exc:
            logger.warning("Host override unavailable, using default: %s", exc)
            host = None
        return replace(call, base_url=host or self._settings.api_base_url)

    async def attach_bearer(self, call: ApiCall) -> ApiCall:
        try:
            token = await self._store.get_token()
        except StorageError as exc:
            logger.warning("Credential unavailable, sending request without it: %s", exc)
            token = None
        if not token:
            return call
        headers = dict(call.headers)
        headers["Authorization"] = f"Bearer {token}"
        return replace(call, headers=headers)

    async def send(self, call: ApiCall, intercept: bool = True) -> ApiResponse:
        """Run the call through the interceptor chains.

        With ``intercept=False`` the call goes out exactly as given: no host
        resolution, no credential and no inbound handlers. Used for checking
        hosts other than the configured API.
        """
        if not intercept:
            return await self._perform_with_deadline(call)

        for interceptor in self.request_interceptors:
            call = await interceptor(call)

        try:
            response = await self._perform_with_deadline(call)
        except ApiHttpError as error:
            for error_interceptor in self.error_interceptors:
                await error_interceptor(call, error)
            raise

        for response_interceptor in self.response_interceptors:
            await response_interceptor(response)
        return response

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.send(ApiCall("GET", path, params=params))
        return response.payload

    async def get_absolute_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        intercept: bool = True,
    ) -> Any:
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"Absolute http(s) URL required, got {url!r}")
        response = await self.send(ApiCall("GET", url, params=params), intercept=intercept)
        return response.payload

    async def post_json(self, path: str, payload: dict[str, Any]) -> Any:
        response = await self.send(ApiCall("POST", path, json=payload))
        return response.payload

    async def put_json(self, path: str, payload: dict[str, Any]) -> Any:
        response = await self.send(ApiCall("PUT", path, json=payload))
        return response.payload

    async def delete_json(self, path: str) -> Any:
        response = await self.send(ApiCall("DELETE", path))
        return response.payload

    async def _perform_with_deadline(self, call: ApiCall) -> ApiResponse:
        # requests only bounds connect and per-read waits; this bounds the whole exchange.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._perform, call),
                self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(
                f"{call.method} {call.url} timed out after {self._settings.timeout_seconds}s"
            ) from exc

    def close(self) -> None:
        self._session.close()

    def _perform(self, call: ApiCall) -> ApiResponse:
        try:
            response = self._session.request(
                call.method,
                call.url,
                headers=call.headers,
                json=call.json,
                params=call.params,
                timeout=self._settings.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise RequestTimeoutError(
                f"{call.method} {call.url} timed out after {self._settings.timeout_seconds}s"
            ) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"{call.method} {call.url} failed: {exc}") from exc

        payload = _decode_payload(response)
        if response.ok:
            return ApiResponse(call=call, status_code=response.status_code, payload=payload)

        raise build_http_error(response.status_code, response.text[:500], payload)


def build_http_error(status_code: int, text: str, payload: Any = None) -> ApiHttpError:
    message = f"HTTP {status_code}: {text}"
    if status_code == 401:
        return UnauthorizedError(status_code, message, payload)
    if status_code == 400:
        return ApiValidationError(status_code, message, payload)
    return ApiHttpError(status_code, message, payload)


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, (NetworkError, RequestTimeoutError)):
        return True
    if isinstance(error, ApiHttpError):
        return error.status_code == 429 or error.status_code >= 500
    return False


def _decode_payload(response: requests.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text[:500]}


async def log_request(call: ApiCall) -> ApiCall:
    logger.debug("Request %s %s headers=%s", call.method, call.url, redact_headers(call.headers))
    return call


async def log_response(response: ApiResponse) -> None:
    logger.debug("Response %s %s -> %s", response.call.method, response.call.url, response.status_code)


async def log_error(call: ApiCall, error: ApiHttpError) -> None:
    if error.status_code:
        logger.info("Response %s %s -> %s", call.method, call.url, error.status_code)
    else:
        logger.warning("Network error on %s %s: %s", call.method, call.url, error)
